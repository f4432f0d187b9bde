# 📁 polypulse/billing/stripe_service.py
import json
import logging

import stripe

from polypulse.core.config import Config

logger = logging.getLogger(__name__)


class BillingDisabledError(Exception):
    pass


class BillingService:
    """Stripe subscriptions for the premium tier"""

    def __init__(self, secret_key=None, price_id=None, webhook_secret=None, bot_url=None,
                 public_url=None, trial_days=None):
        self.secret_key = secret_key if secret_key is not None else Config.STRIPE_SECRET_KEY
        self.price_id = price_id if price_id is not None else Config.STRIPE_PRICE_ID
        self.webhook_secret = webhook_secret if webhook_secret is not None else Config.STRIPE_WEBHOOK_SECRET
        self.bot_url = bot_url or Config.BOT_URL
        self.public_url = (Config.PUBLIC_URL if public_url is None else public_url).rstrip("/")
        self.trial_days = Config.TRIAL_DAYS if trial_days is None else trial_days

    @property
    def enabled(self):
        return bool(self.secret_key and self.price_id)

    def _require(self):
        if not self.enabled:
            raise BillingDisabledError("Stripe is not configured")

    def get_or_create_customer(self, telegram_id, username=None, email=None):
        self._require()
        existing = stripe.Customer.search(
            query=f'metadata["telegram_id"]:"{telegram_id}"',
            api_key=self.secret_key,
        )
        if existing.data:
            return existing.data[0]

        customer = stripe.Customer.create(
            name=username or f"Telegram User {telegram_id}",
            email=email,
            metadata={"telegram_id": str(telegram_id), "source": "polypulse_bot"},
            api_key=self.secret_key,
        )
        logger.info(f"💳 Stripe customer {customer.id} created for {telegram_id}")
        return customer

    def create_checkout_session(self, telegram_id, username=None):
        customer = self.get_or_create_customer(telegram_id, username)
        subscription_data = {"metadata": {"telegram_id": str(telegram_id)}}
        if self.trial_days:
            subscription_data["trial_period_days"] = self.trial_days

        session = stripe.checkout.Session.create(
            customer=customer.id,
            payment_method_types=["card"],
            line_items=[{"price": self.price_id, "quantity": 1}],
            mode="subscription",
            success_url=self._return_url("success"),
            cancel_url=self._return_url("cancelled"),
            metadata={"telegram_id": str(telegram_id), "product": "polypulse_premium"},
            subscription_data=subscription_data,
            allow_promotion_codes=True,
            api_key=self.secret_key,
        )
        return {"url": session.url, "session_id": session.id, "customer_id": customer.id}

    def create_portal_session(self, customer_id):
        self._require()
        session = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=self.bot_url,
            api_key=self.secret_key,
        )
        return session.url

    def construct_event(self, payload, signature):
        """Verify the signature and return the event as a plain dict"""
        stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        return json.loads(payload)

    def _return_url(self, outcome):
        if not self.public_url:
            return self.bot_url
        if outcome == "success":
            return f"{self.public_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}"
        return f"{self.public_url}/payment-cancelled"
