"""
Sustainability Tracker - Flask Application
Feedback endpoints for energy, water and waste entries, plus entry listing,
analytics and export for the tracker front end.
"""

import os
import logging
import threading
from datetime import datetime, timedelta, timezone
from io import BytesIO
from time import perf_counter
from logging.handlers import RotatingFileHandler

from flask import Flask, request, jsonify, send_file
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from config import Config, FeedbackSettings
from services.analytics import entries_to_csv, filter_entries, search_entries, summarize
from services.entries import DOMAIN_CATEGORIES
from services.entry_store import SqliteEntryStore
from services.errors import FeedbackError, ValidationError
from services.feedback_service import FeedbackService

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(Config)

# Initialize basic rate limiting
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=app.config.get('RATELIMIT_STORAGE_URI', 'memory://'),
    strategy='fixed-window',
    default_limits=["1000 per day", "200 per hour"],
)
limiter.init_app(app)

@limiter.request_filter
def _rate_limit_exempt_for_tests():
    return app.config.get('TESTING', False)

os.makedirs(app.config.get('LOG_DIR', 'logs'), exist_ok=True)
_file_handler = RotatingFileHandler(
    os.path.join(app.config.get('LOG_DIR', 'logs'), 'app.log'),
    maxBytes=5 * 1024 * 1024,
    backupCount=5,
)
_file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
if not any(isinstance(h, RotatingFileHandler) for h in app.logger.handlers):
    app.logger.addHandler(_file_handler)
# service modules log through their own loggers
logging.getLogger('services').setLevel(app.config.get('LOG_LEVEL', 'INFO'))
if not any(isinstance(h, RotatingFileHandler) for h in logging.getLogger('services').handlers):
    logging.getLogger('services').addHandler(_file_handler)

if app.config.get('SENTRY_DSN'):
    sentry_sdk.init(
        dsn=app.config.get('SENTRY_DSN'),
        integrations=[FlaskIntegration()],
        traces_sample_rate=app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1),
    )

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
}
FEEDBACK_PATH_PREFIX = '/functions/v1/'

REQUEST_METRICS = {
    'requests_total': 0,
    'errors_total': 0,
    'latency_ms_total': 0.0,
    'feedback_total': 0,
    'feedback_degraded_total': 0,
}
_metrics_lock = threading.Lock()


@app.before_request
def _metrics_before_request():
    request._start_ts = perf_counter()


@app.after_request
def _metrics_after_request(response):
    started = getattr(request, '_start_ts', None)
    if started is not None:
        elapsed = (perf_counter() - started) * 1000.0
        with _metrics_lock:
            REQUEST_METRICS['requests_total'] += 1
            REQUEST_METRICS['latency_ms_total'] += elapsed
            if response.status_code >= 400:
                REQUEST_METRICS['errors_total'] += 1
    return response


@app.after_request
def _cors_headers(response):
    if request.path.startswith(FEEDBACK_PATH_PREFIX):
        response.headers.update(CORS_HEADERS)
    return response


def get_feedback_service():
    """Return the service for this process, building it from app config once."""
    service = app.extensions.get('feedback_service')
    if service is None:
        service = FeedbackService(FeedbackSettings.from_config(app.config))
        app.extensions['feedback_service'] = service
    return service


def init_db():
    """Create the entries table for the local SQLite store."""
    SqliteEntryStore(app.config['DATABASE_PATH']).init_db()


def _requested_user_id():
    user_id = request.args.get('user_id') or ''
    if not user_id.strip():
        raise ValidationError('Missing user_id')
    return user_id


def _requested_domain():
    domain = (request.args.get('domain') or 'all').strip().lower()
    if domain != 'all' and domain not in DOMAIN_CATEGORIES:
        raise ValidationError(f'Unknown domain: {domain}')
    return domain


def _load_entries(user_id, domain='all'):
    store = get_feedback_service().store
    if domain == 'all':
        return store.list_entries(user_id)
    return store.list_entries(user_id, DOMAIN_CATEGORIES[domain])

# ===== FEEDBACK ROUTES =====

@app.route('/functions/v1/<any(energy, water, waste):domain>-feedback', methods=['POST', 'OPTIONS'])
@limiter.limit(lambda: app.config['FEEDBACK_RATE_LIMIT'], methods=['POST'])
def submit_feedback(domain):
    """Save an entry, then attach generated feedback when the provider answers."""
    if request.method == 'OPTIONS':
        return app.make_response(('', 200))

    payload = request.get_json(force=True, silent=True)
    result = get_feedback_service().submit(payload, domain=domain)

    with _metrics_lock:
        REQUEST_METRICS['feedback_total'] += 1
        if not result.enriched:
            REQUEST_METRICS['feedback_degraded_total'] += 1
    app.logger.info('Saved %s entry %s (enriched=%s)', domain, result.entry.id, result.enriched)
    return jsonify(result.to_dict()), 200

# ===== ENTRY ROUTES =====

@app.route('/entries')
def list_entries():
    """Entries of one user, newest first, optionally filtered and searched."""
    user_id = _requested_user_id()
    domain = _requested_domain()
    entries = _load_entries(user_id, domain)
    entries = search_entries(entries, request.args.get('q'))
    return jsonify({'entries': [e.to_dict() for e in entries]}), 200


@app.route('/analytics')
def analytics():
    user_id = _requested_user_id()
    domain = _requested_domain()
    entries = _load_entries(user_id)
    summary = summarize(filter_entries(entries, domain))
    summary['domain'] = domain
    return jsonify(summary), 200


@app.route('/export')
@limiter.limit('20 per hour')
def export_entries():
    user_id = _requested_user_id()
    entries = _load_entries(user_id, _requested_domain())
    out = BytesIO(entries_to_csv(entries).encode('utf-8'))
    out.seek(0)
    return send_file(
        out,
        as_attachment=True,
        download_name=f'entries_export_{datetime.now(timezone.utc):%Y%m%d}.csv',
        mimetype='text/csv',
    )


@app.route('/health')
def health():
    return jsonify({'status': 'ok', 'service': 'sustainability-tracker'}), 200


@app.route('/metrics')
def metrics():
    total = REQUEST_METRICS['requests_total']
    avg_latency = (REQUEST_METRICS['latency_ms_total'] / total) if total else 0.0
    return jsonify({
        'requests_total': total,
        'errors_total': REQUEST_METRICS['errors_total'],
        'avg_latency_ms': round(avg_latency, 2),
        'feedback_total': REQUEST_METRICS['feedback_total'],
        'feedback_degraded_total': REQUEST_METRICS['feedback_degraded_total'],
    }), 200


# ===== ERROR HANDLERS =====


@app.errorhandler(FeedbackError)
def feedback_error(error):
    if error.status_code >= 500:
        app.logger.error('%s: %s %s', type(error).__name__, error.message, error.details or '')
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(429)
def rate_limited(error):
    reset_ts = int((datetime.now(timezone.utc) + timedelta(minutes=15)).timestamp())
    resp = jsonify({'error': 'Too many requests. Please slow down and try again later.'})
    resp.status_code = 429
    resp.headers['X-RateLimit-Reset'] = str(reset_ts)
    return resp


@app.errorhandler(404)
def not_found(error):
    return jsonify({'error': 'Not found'}), 404


@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({'error': 'Method not allowed'}), 405


@app.errorhandler(500)
def internal_error(error):
    original = getattr(error, 'original_exception', None)
    if original is not None and not isinstance(original, HTTPException):
        app.logger.exception('Unhandled error', exc_info=original)
    return jsonify({'error': 'An unexpected server error occurred. Please retry in a moment.'}), 500

# ===== APPLICATION ENTRY POINT =====

if __name__ == '__main__':
    if app.config['STORE_BACKEND'] == 'sqlite':
        init_db()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=app.config['DEBUG'])
