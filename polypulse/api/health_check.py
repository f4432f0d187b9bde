# 📁 polypulse/api/health_check.py
"""
Web surface: health endpoints, checkout return pages and the Stripe webhook.
Runs in a background thread beside the bot.
"""
import logging
import threading

from flask import Flask, jsonify

from polypulse.billing.webhook import webhook_bp

logger = logging.getLogger(__name__)

_PAGE = """<!doctype html>
<html><head><meta charset="utf-8"><title>PolyPulse</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 15vh">
<h1>{title}</h1><p>{body}</p><p><a href="{bot_url}">Back to PolyPulse</a></p>
</body></html>"""


def create_app(ctx):
    app = Flask(__name__)
    app.config['POLYPULSE'] = ctx
    app.register_blueprint(webhook_bp)

    @app.route('/')
    def home():
        return '📊 PolyPulse is running!'

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok', 'service': 'polypulse-webhook'})

    @app.route('/status')
    def status():
        try:
            database = 'ok' if ctx.db.ping() else 'down'
        except Exception as e:
            logger.error(f"❌ Database ping failed: {e}")
            database = 'down'
        jobs = ctx.scheduler.status() if ctx.scheduler else {}
        failing = sorted(name for name, health in jobs.items() if health['consecutive_failures'])
        return jsonify({
            'status': 'running',
            'service': 'polypulse',
            'environment': ctx.config.ENVIRONMENT,
            'database': database,
            'billing': ctx.billing.enabled,
            'failing_jobs': failing,
        })

    @app.route('/payment-success')
    def payment_success():
        return _PAGE.format(
            title='🎉 Payment successful',
            body='Your Premium access is being activated. Head back to Telegram, '
                 'a confirmation message is on its way.',
            bot_url=ctx.config.BOT_URL,
        )

    @app.route('/payment-cancelled')
    def payment_cancelled():
        return _PAGE.format(
            title='Payment cancelled',
            body='No charge was made. You can upgrade any time with /upgrade.',
            bot_url=ctx.config.BOT_URL,
        )

    return app


def start_web_server(app, port=8000):
    """Start the Flask app in a daemon thread"""

    def run_server():
        logger.info(f"🚀 Starting web server on port {port}")
        app.run(host='0.0.0.0', port=port, debug=False, use_reloader=False)

    server_thread = threading.Thread(target=run_server, name='polypulse-web', daemon=True)
    server_thread.start()
    logger.info(f"✅ Web server started on port {port}")
    return server_thread
