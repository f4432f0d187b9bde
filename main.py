#!/usr/bin/env python3
"""
PolyPulse - Polymarket alerts on Telegram

One process: Flask web app (health + Stripe webhook) in a daemon thread,
background jobs on the scheduler thread, and bot polling in the main thread.
"""
import logging

from polypulse.api.health_check import create_app, start_web_server
from polypulse.bot.main import run_bot
from polypulse.core.config import Config
from polypulse.core.context import AppContext
from polypulse.core.scheduler import JobScheduler
from polypulse.jobs.alert_engine import AlertEngine
from polypulse.jobs.briefing_cron import BriefingCron
from polypulse.jobs.prediction_resolver import resolve_predictions
from polypulse.jobs.smart_alert_monitor import SmartAlertMonitor
from polypulse.jobs.whale_monitor import WhaleMonitor

logger = logging.getLogger(__name__)


def schedule_jobs(ctx, config=Config):
    scheduler = JobScheduler()

    alerts = AlertEngine(ctx)
    scheduler.every(config.ALERT_CHECK_INTERVAL, 'alerts', alerts.run_once,
                    first_delay=config.ALERT_FIRST_CHECK_DELAY)

    if config.ENABLE_WHALES:
        whales = WhaleMonitor(ctx)
        scheduler.every(config.WHALE_POLL_INTERVAL, 'whales', whales.run_once)

    if config.ENABLE_SMART_ALERTS:
        smart = SmartAlertMonitor(ctx)
        scheduler.every(config.SMART_ALERT_POLL_INTERVAL, 'smart_alerts', smart.run_once)
        scheduler.hourly('smart_alert_cleanup', smart.cleanup, minute=30)

    if config.ENABLE_BRIEFINGS:
        briefings = BriefingCron(ctx)
        scheduler.hourly('briefings', briefings.run_once)

    scheduler.hourly('prediction_resolver', lambda: resolve_predictions(ctx), minute=15)
    ctx.scheduler = scheduler
    return scheduler


def main():
    logger.info("🤖 Starting PolyPulse...")
    Config.validate()

    ctx = AppContext.from_config(Config)
    try:
        start_web_server(create_app(ctx), Config.PORT)
        schedule_jobs(ctx).start()
        run_bot(ctx)
    finally:
        ctx.close()


if __name__ == "__main__":
    main()
