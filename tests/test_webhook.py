import json

import pytest
import stripe

from polypulse.api.health_check import create_app
from polypulse.billing.webhook import WebhookProcessor
from polypulse.core.clock import from_timestamp


@pytest.fixture
def client(ctx, monkeypatch):
    monkeypatch.setattr(stripe.Webhook, 'construct_event',
                        lambda payload, sig, secret: {'verified': True})
    app = create_app(ctx)
    app.config['TESTING'] = True
    return app.test_client()


def post_event(client, event_type, obj, path='/webhook'):
    body = json.dumps({'type': event_type, 'data': {'object': obj}})
    return client.post(path, data=body, headers={'Stripe-Signature': 't=1,v1=abc'},
                       content_type='application/json')


def test_checkout_completed_activates_premium(ctx, client, make_user, notifier):
    make_user(500)
    response = post_event(client, 'checkout.session.completed', {
        'mode': 'subscription', 'customer': 'cus_1', 'subscription': 'sub_1',
        'metadata': {'telegram_id': '500'},
    })

    assert response.status_code == 200
    assert response.get_json() == {'received': True}
    user = ctx.users.get(500)
    assert user.subscription_status == 'premium'
    assert user.stripe_customer_id == 'cus_1'
    assert user.premium_until is None
    assert len(notifier.to(500)) == 1


def test_trialing_subscription_starts_a_trial(ctx, client, make_user, notifier):
    ctx.users.set_stripe_customer(make_user(501).telegram_id, 'cus_2')
    post_event(client, 'customer.subscription.created',
               {'id': 'sub_2', 'customer': 'cus_2', 'status': 'trialing'}, path='/stripe-webhook')

    user = ctx.users.get(501)
    assert user.subscription_status == 'trial'
    assert user.trial_started_at is not None
    assert user.drip_step == 0
    assert ctx.is_premium(user)
    assert len(notifier.to(501)) == 1


def test_subscription_deleted_keeps_access_until_period_end(ctx, client, make_user):
    make_user(502, 'premium', stripe_customer_id='cus_3')
    period_end = 4102444800  # 2100-01-01
    post_event(client, 'customer.subscription.deleted',
               {'id': 'sub_3', 'customer': 'cus_3', 'current_period_end': period_end})

    user = ctx.users.get(502)
    assert user.subscription_status == 'cancelled'
    assert user.premium_until == from_timestamp(period_end)
    assert ctx.is_premium(user)


def test_unknown_customer_is_acknowledged(client):
    response = post_event(client, 'invoice.payment_failed', {'customer': 'cus_missing'})
    assert response.status_code == 200


def test_bad_signature_is_rejected(ctx, monkeypatch):
    def reject(payload, sig, secret):
        raise ValueError('No signatures found matching the expected signature')

    monkeypatch.setattr(stripe.Webhook, 'construct_event', reject)
    client = create_app(ctx).test_client()
    response = client.post('/webhook', data='{}', headers={'Stripe-Signature': 'bad'})

    assert response.status_code == 400
    assert 'Webhook Error' in response.get_data(as_text=True)


def test_processor_swallows_handler_errors(ctx, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError('db down')

    monkeypatch.setattr(ctx.users, 'activate_premium', boom)
    event = {'type': 'checkout.session.completed',
             'data': {'object': {'mode': 'subscription', 'customer': 'cus_x'}}}
    assert WebhookProcessor(ctx).handle_event(event) is None


def test_health_endpoints(ctx):
    client = create_app(ctx).test_client()
    assert client.get('/health').get_json()['status'] == 'ok'
    status = client.get('/status').get_json()
    assert status['database'] == 'ok'
    assert status['failing_jobs'] == []
