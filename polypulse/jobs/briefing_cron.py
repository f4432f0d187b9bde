# 📁 polypulse/jobs/briefing_cron.py
import logging
import time

from polypulse.api.polymarket_client import MarketAPIError
from polypulse.bot import messages
from polypulse.bot.notifier import NotificationError
from polypulse.core.clock import utcnow
from polypulse.jobs.briefing import BriefingBuilder
from polypulse.jobs.drip import send_due_drips

logger = logging.getLogger(__name__)

LITE_BRIEFING_HOUR = 14
WHALE_TEASER_HOUR = 15
WINBACK_HOUR = 18


class BriefingCron:
    """Hourly: premium briefings, then the free-tier nudges due this hour, then the drip"""

    def __init__(self, ctx, briefing_delay=1.0, nudge_delay=0.5, drip_delay=0.5):
        self.ctx = ctx
        self.builder = BriefingBuilder(ctx)
        self.briefing_delay = briefing_delay
        self.nudge_delay = nudge_delay
        self.drip_delay = drip_delay

    def _pause(self, seconds):
        if seconds:
            time.sleep(seconds)

    def send_briefing(self, user):
        message = self.builder.build_message(user)
        if not message:
            logger.info(f"No meaningful content for user {user.telegram_id}, skipping")
            self.ctx.briefings.mark_sent(user.id)
            return False
        try:
            self.ctx.notifier.send_message(user.telegram_id, message)
        except NotificationError as e:
            logger.error(f"❌ Failed to send briefing to {user.telegram_id}: {e}")
            if e.blocked:
                logger.info(f"User {user.telegram_id} has blocked the bot or is deactivated")
            return False
        self.ctx.briefings.mark_sent(user.id)
        logger.info(f"✅ Briefing sent to user {user.telegram_id}")
        return True

    def send_premium_briefings(self, utc_hour, now=None):
        due = self.ctx.briefings.get_users_for_briefing(utc_hour, now)
        logger.info(f"📬 {len(due)} users due a briefing at UTC hour {utc_hour}")
        sent = 0
        for i, (user, _prefs) in enumerate(due):
            if i:
                self._pause(self.briefing_delay)
            if self.send_briefing(user):
                sent += 1
        return sent

    def _broadcast(self, users, text, mark, label):
        sent = 0
        for user in users:
            if self.ctx.notifier.try_send(user.telegram_id, text):
                mark(user.id)
                sent += 1
            self._pause(self.nudge_delay)
        logger.info(f"✅ Sent {sent} {label}")
        return sent

    def send_lite_briefings(self):
        users = self.ctx.users.get_free_users_for_lite_briefing()
        if not users:
            return 0
        try:
            markets = self.ctx.markets.list_trending(limit=3)
        except MarketAPIError as e:
            logger.error(f"❌ Lite briefing skipped: {e}")
            return 0
        if not markets:
            logger.info("No lite briefing content available, skipping")
            return 0
        return self._broadcast(users, messages.lite_briefing(markets),
                               self.ctx.users.mark_lite_briefing_sent, 'lite briefings')

    def send_whale_teasers(self):
        events = self.ctx.whales.get_recent_events(hours=24, limit=1)
        if not events:
            logger.info("No whale events for teaser, skipping")
            return 0
        whale = events[0]
        text = messages.whale_teaser(whale.amount_usd, whale.market_title)
        return self._broadcast(self.ctx.users.get_free_users_for_whale_teaser(), text,
                               self.ctx.users.mark_whale_teaser_sent, 'whale teasers')

    def send_winbacks(self):
        users = self.ctx.users.get_winback_eligible_users()
        if not users:
            return 0
        top = None
        try:
            trending = self.ctx.markets.list_trending(limit=1)
            top = trending[0] if trending else None
        except MarketAPIError as e:
            logger.warning(f"⚠️ Win-back without market snippet: {e}")
        return self._broadcast(users, messages.winback(top),
                               self.ctx.users.mark_winback_sent, 'win-back messages')

    def run_once(self, now=None):
        now = now or utcnow()
        utc_hour = now.hour
        summary = {'briefings': self.send_premium_briefings(utc_hour, now)}

        if utc_hour == LITE_BRIEFING_HOUR:
            summary['lite'] = self.send_lite_briefings()
        if utc_hour == WHALE_TEASER_HOUR:
            summary['teasers'] = self.send_whale_teasers()
        if utc_hour == WINBACK_HOUR:
            summary['winbacks'] = self.send_winbacks()

        summary['drips'] = send_due_drips(self.ctx, self.drip_delay, now)
        logger.info(f"✅ Briefing cron complete: {summary}")
        return summary
