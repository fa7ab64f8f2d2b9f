"""Health check blueprint."""
import logging

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from marketplace.database import get_session
from marketplace.services.cache_service import get_cache

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__, url_prefix='/api')


@health_bp.route('/health', methods=['GET'])
def health():
    """Liveness plus database, cache and gateway status."""
    database = 'ok'
    try:
        get_session().execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        database = 'unavailable'

    gateway = current_app.extensions['payment_gateway']
    status_code = 200 if database == 'ok' else 503
    return jsonify({
        'status': 'ok' if status_code == 200 else 'degraded',
        'database': database,
        'cache': 'ok' if get_cache().is_available() else 'disabled',
        'payment_gateway': gateway.name if gateway.available else 'unavailable',
    }), status_code
