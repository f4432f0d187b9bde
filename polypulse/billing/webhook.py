# 📁 polypulse/billing/webhook.py
import logging

from flask import Blueprint, current_app, jsonify, request

from polypulse.bot import messages
from polypulse.core.clock import from_timestamp

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ('active',)
TRIAL_STATUSES = ('trialing',)
PAYMENT_ISSUE_STATUSES = ('past_due', 'unpaid')


class WebhookProcessor:
    """Applies Stripe events to user billing state and notifies the user"""

    def __init__(self, ctx):
        self.ctx = ctx

    def _notify(self, user, text):
        if user and user.telegram_id:
            self.ctx.notifier.try_send(user.telegram_id, text)

    def _activate(self, customer_id, subscription_id, telegram_id=None):
        user = self.ctx.users.activate_premium(customer_id, subscription_id)
        if user is None and telegram_id:
            user = self.ctx.users.activate_premium_by_telegram_id(telegram_id, customer_id,
                                                                  subscription_id)
        return user

    def on_checkout_completed(self, session):
        if session.get('mode') != 'subscription':
            return None
        customer_id = session.get('customer')
        telegram_id = (session.get('metadata') or {}).get('telegram_id')
        logger.info(f"✅ Checkout completed: customer={customer_id}, telegram={telegram_id}")

        user = self._activate(customer_id, session.get('subscription'), telegram_id)
        if user is None:
            logger.warning(f"⚠️ No user found for checkout customer {customer_id}")
            return None
        self._notify(user, messages.upgrade_success())
        return user

    def on_subscription_changed(self, subscription, created=False):
        customer_id = subscription.get('customer')
        status = subscription.get('status')
        telegram_id = (subscription.get('metadata') or {}).get('telegram_id')
        logger.info(f"📝 Subscription {'created' if created else 'updated'}: "
                    f"customer={customer_id}, status={status}")

        if status in TRIAL_STATUSES:
            user = self.ctx.users.start_trial(customer_id, subscription.get('id'), telegram_id)
            if created:
                self._notify(user, messages.trial_started())
            return user

        if status in ACTIVE_STATUSES:
            user = self._activate(customer_id, subscription.get('id'), telegram_id)
            if created:
                self._notify(user, messages.upgrade_success())
            return user

        if status in PAYMENT_ISSUE_STATUSES:
            logger.warning(f"⚠️ Payment issue for {customer_id}")
        return None

    def on_subscription_deleted(self, subscription):
        customer_id = subscription.get('customer')
        period_end = subscription.get('current_period_end')
        ends_at = from_timestamp(period_end) if period_end else None
        logger.info(f"🚫 Subscription cancelled for {customer_id}")

        user = self.ctx.users.cancel_premium(customer_id, ends_at)
        self._notify(user, messages.subscription_cancelled(ends_at))
        return user

    def on_payment_failed(self, invoice):
        customer_id = invoice.get('customer')
        logger.warning(f"❌ Payment failed for {customer_id}")
        user = self.ctx.users.get_by_stripe_customer(customer_id)
        self._notify(user, messages.payment_failed())
        return user

    def handle_event(self, event):
        """Process one verified event; errors are logged, never raised"""
        event_type = event.get('type')
        obj = (event.get('data') or {}).get('object') or {}
        logger.info(f"📥 Webhook: {event_type}")
        try:
            if event_type == 'checkout.session.completed':
                return self.on_checkout_completed(obj)
            if event_type == 'customer.subscription.created':
                return self.on_subscription_changed(obj, created=True)
            if event_type == 'customer.subscription.updated':
                return self.on_subscription_changed(obj)
            if event_type == 'customer.subscription.deleted':
                return self.on_subscription_deleted(obj)
            if event_type == 'invoice.payment_failed':
                return self.on_payment_failed(obj)
            logger.info(f"Unhandled event type: {event_type}")
        except Exception as e:
            logger.error(f"❌ Error processing {event_type}: {e}")
        return None


webhook_bp = Blueprint('stripe_webhook', __name__)


@webhook_bp.route('/webhook', methods=['POST'])
@webhook_bp.route('/stripe-webhook', methods=['POST'])
def stripe_webhook():
    ctx = current_app.config['POLYPULSE']
    payload = request.get_data()
    signature = request.headers.get('Stripe-Signature', '')

    try:
        event = ctx.billing.construct_event(payload, signature)
    except Exception as e:
        logger.error(f"❌ Webhook signature verification failed: {e}")
        return f"Webhook Error: {e}", 400

    WebhookProcessor(ctx).handle_event(event)
    return jsonify({'received': True})
