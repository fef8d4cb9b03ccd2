"""Request throttling for API endpoints (coarse, in front of the waitlist admission gate)"""
from flask_limiter import Limiter
import os

from utils.auth import get_client_ip


def get_rate_limit_key():
    """Key on the client IP as seen through Cloudflare / proxies"""
    return get_client_ip()


def init_rate_limiter(app):
    """Initialize rate limiter with Flask app"""
    default_limit = os.environ.get('RATE_LIMIT_DEFAULT', '100 per minute')

    limiter = Limiter(
        app=app,
        key_func=get_rate_limit_key,
        default_limits=[default_limit],
        storage_uri=os.environ.get('RATE_LIMIT_STORAGE_URI', 'memory://'),  # Redis URL for multi-instance deployments
        headers_enabled=True  # Include rate limit headers in response
    )

    return limiter

# Rate limit presets for different endpoint types
RATE_LIMITS = {
    'strict': '10 per minute',      # Admin and monitoring endpoints
    'moderate': '30 per minute',    # Public write endpoints (waitlist signup)
}
