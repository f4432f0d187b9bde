# 📁 polypulse/bot/notifier.py
import logging

import requests

from polypulse.core.config import Config

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    def __init__(self, description, status_code=None):
        super().__init__(description)
        self.description = description
        self.status_code = status_code

    @property
    def blocked(self):
        text = (self.description or '').lower()
        return self.status_code == 403 or 'blocked' in text or 'deactivated' in text


class TelegramNotifier:
    """Plain Bot API sender for background jobs and the webhook"""

    def __init__(self, token=None, timeout=None, session=None):
        self.token = token or Config.TELEGRAM_TOKEN
        self.base_url = f"https://api.telegram.org/bot{self.token}"
        self.timeout = timeout or Config.API_TIMEOUT
        self.session = session or requests.Session()

    def close(self):
        self.session.close()

    def send_message(self, chat_id, text, parse_mode="MarkdownV2", disable_web_page_preview=True,
                     reply_markup=None):
        data = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": disable_web_page_preview,
        }
        if parse_mode:
            data["parse_mode"] = parse_mode
        if reply_markup:
            data["reply_markup"] = reply_markup

        try:
            response = self.session.post(f"{self.base_url}/sendMessage", json=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationError(str(e)) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code != 200 or not payload.get("ok", False):
            raise NotificationError(payload.get("description") or response.text, response.status_code)
        return payload.get("result")

    def try_send(self, chat_id, text, **kwargs):
        """send_message that logs failures instead of raising"""
        try:
            self.send_message(chat_id, text, **kwargs)
            return True
        except NotificationError as e:
            logger.error(f"❌ Failed to send to {chat_id}: {e}")
            return False
