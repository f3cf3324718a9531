"""Authorization helpers for the outbox trigger endpoints."""
import hmac
from functools import wraps

from flask import current_app, jsonify, request, session

from mailroom.logging_config import get_logger

logger = get_logger(__name__)


def get_current_admin():
    """
    Identity of the logged-in user, as set in the session by the site's
    login layer.

    Returns:
        dict with 'user_id' and 'is_admin', or None if nobody is logged in
    """
    user_id = session.get('user_id')
    if not user_id:
        return None
    return {'user_id': user_id, 'is_admin': bool(session.get('is_admin'))}


def admin_required(f):
    """
    Decorator to require admin privileges for a route.
    
    Returns 401 Unauthorized if user is not logged in.
    Returns 403 Forbidden if user is not an admin.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_admin()
        if not user:
            return jsonify({'error': 'Authentication required'}), 401
        if not user['is_admin']:
            logger.warning("Non-admin user attempted to access admin-only route",
                           user_id=user['user_id'], path=request.path)
            return jsonify({'error': 'Admin privileges required'}), 403
        return f(*args, **kwargs)
    return decorated_function


def extract_cron_token():
    """Token from 'Authorization: Bearer', 'X-Cron-Secret', or the 'secret' query parameter."""
    header = request.headers.get('Authorization') or request.headers.get('X-Cron-Secret')
    if header and header.startswith('Bearer '):
        header = header[len('Bearer '):]
    return (header or request.args.get('secret') or '').strip()


def is_cron_authorized():
    """Check the request against OUTBOX_CRON_SECRET. Always False when no secret is configured."""
    secret = (current_app.config.get('OUTBOX_CRON_SECRET') or '').strip()
    if not secret:
        return False
    token = extract_cron_token()
    return bool(token) and hmac.compare_digest(token.encode('utf-8'), secret.encode('utf-8'))


def cron_secret_required(f):
    """Decorator for the external cron trigger. Returns 401 Unauthorized without a valid secret."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_cron_authorized():
            logger.warning("Unauthorized cron trigger", path=request.path,
                           remote_addr=request.remote_addr)
            return 'Unauthorized', 401
        return f(*args, **kwargs)
    return decorated_function
