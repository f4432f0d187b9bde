# 📁 polypulse/jobs/drip.py
import logging
import time

from polypulse.bot.notifier import NotificationError

logger = logging.getLogger(__name__)

SEND_DELAY = 0.5

DRIP_MESSAGES = {
    # day 1
    1: """*☀️ Welcome to Day 1 of Pro\\!*

Here's what you can do now:

🐋 *Whale Alerts* — Get notified when $50K\\+ bets drop
→ /whale on

☀️ *Morning Briefing* — Daily market summary delivered to you
→ /briefing on

📊 *Unlimited Everything* — Alerts, watchlist, portfolio, search
→ /trending to explore

🧠 *Smart Alerts* — Volume spikes \\& momentum shifts
→ /smartalerts

_Start with whale alerts — that's where the alpha is\\. 🚀_""",
    # day 3
    2: """*💡 Did you know\\?* \\(Day 3 of your trial\\)

You've got some powerful features you might not have tried yet:

🎯 *Predictions* — Call market outcomes \\& track your accuracy
→ /predict bitcoin yes

📂 *Category Subs* — Get alerts for entire sectors
→ /subscribe crypto

💼 *Portfolio Tracker* — Log trades \\& see P&L in real time
→ /buy bitcoin 100 0\\.54

📈 *PnL Summary* — Quick snapshot of your positions
→ /pnl

_The best traders use predictions to sharpen their instincts\\._""",
    # day 5
    3: """*⏰ Your trial ends in 2 days*

You've been using Pro features — here's what you'd lose:

❌ Whale alerts go silent
❌ Morning briefings stop
❌ Back to 3 alerts, 5 watchlist items
❌ No smart alerts or category subs

Your subscription continues automatically at $9\\.99/mo\\.
No action needed to keep Pro\\.

_Or manage anytime: /manage_""",
    # day 7
    4: """*🔔 Last day of your free trial\\!*

Tomorrow your Pro access either continues or you go back to free\\.

*What you keep with Pro:*
✅ Unlimited alerts \\& watchlist
✅ 🐋 Whale alerts
✅ ☀️ Morning briefings
✅ 💼 Full portfolio tracking
✅ 🧠 Smart alerts

*$9\\.99/mo* — that's less than one bad trade\\.

Your subscription renews automatically\\. Cancel anytime: /manage

_Thanks for trying PolyPulse Pro\\! 🙏_""",
}


def send_due_drips(ctx, send_delay=SEND_DELAY, now=None):
    """Send the next due onboarding message to each trial user; returns how many were sent"""
    users = ctx.users.get_trial_users_for_drip()
    logger.info(f"💧 {len(users)} trial users eligible for drip messages")

    sent = 0
    for user in users:
        step = ctx.users.get_next_drip_step(user, now)
        text = DRIP_MESSAGES.get(step)
        if not text:
            continue

        try:
            ctx.notifier.send_message(user.telegram_id, text)
            ctx.users.update_drip_step(user.id, step)
            sent += 1
            logger.info(f"✅ Drip step {step} sent to user {user.telegram_id}")
        except NotificationError as e:
            logger.error(f"❌ Failed drip to {user.telegram_id}: {e}")
            if e.blocked:
                ctx.users.update_drip_step(user.id, step)

        if send_delay:
            time.sleep(send_delay)
    return sent
