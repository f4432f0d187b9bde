# 📁 polypulse/bot/main.py
import logging

from telegram.ext import Application, CommandHandler, MessageHandler, filters

from polypulse.bot import handlers, premium_handlers, tracking_handlers

logger = logging.getLogger(__name__)

COMMANDS = {
    'start': handlers.handle_start,
    'help': handlers.handle_help,
    'trending': handlers.handle_trending,
    'price': handlers.handle_price,
    'search': handlers.handle_search,
    'alert': handlers.handle_alert,
    'alerts': handlers.handle_alerts,
    'cancelalert': handlers.handle_cancel_alert,
    'watch': handlers.handle_watch,
    'watchlist': handlers.handle_watchlist,
    'unwatch': handlers.handle_unwatch,
    'account': handlers.handle_account,
    'status': handlers.handle_account,
    'upgrade': handlers.handle_upgrade,
    'manage': handlers.handle_manage,
    'stats': handlers.handle_stats,
    'market': handlers.handle_market,
    'top': handlers.handle_top,
    'cancel': handlers.handle_cancel,
    'digest': premium_handlers.handle_digest,
    'briefing': premium_handlers.handle_briefing,
    'timezone': premium_handlers.handle_timezone,
    'whale': premium_handlers.handle_whale,
    'smartalerts': premium_handlers.handle_smart_alerts,
    'smartalert': premium_handlers.handle_smart_alert,
    'portfolio': tracking_handlers.handle_portfolio,
    'buy': tracking_handlers.handle_buy,
    'sell': tracking_handlers.handle_sell,
    'pnl': tracking_handlers.handle_pnl,
    'categories': tracking_handlers.handle_categories,
    'subscribe': tracking_handlers.handle_subscribe,
    'unsubscribe': tracking_handlers.handle_unsubscribe,
    'mysubs': tracking_handlers.handle_my_subs,
    'predict': tracking_handlers.handle_predict,
    'predictions': tracking_handlers.handle_predictions,
    'accuracy': tracking_handlers.handle_accuracy,
    'leaderboard': tracking_handlers.handle_leaderboard,
}


def build_application(ctx):
    """Telegram application with every command registered and the context in bot_data"""
    application = Application.builder().token(ctx.config.TELEGRAM_TOKEN).build()
    application.bot_data['polypulse'] = ctx

    for name, callback in COMMANDS.items():
        application.add_handler(CommandHandler(name, callback))
    application.add_handler(MessageHandler(filters.COMMAND, handlers.handle_unknown))
    application.add_error_handler(handlers.handle_error)

    logger.info(f"✅ Bot setup completed ({len(COMMANDS)} commands)")
    return application


def run_bot(ctx):
    """Blocks until the process is stopped"""
    application = build_application(ctx)
    logger.info("🤖 Starting bot polling...")
    application.run_polling(
        drop_pending_updates=True,
        allowed_updates=['message'],
    )
