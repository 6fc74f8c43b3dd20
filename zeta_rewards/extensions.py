"""
Shared Flask extension instances.

Centralized to avoid circular imports. Extensions are initialized
here but configured in create_app().
"""

import os
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from apscheduler.schedulers.background import BackgroundScheduler
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize extensions (without binding to an app yet)
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
scheduler = BackgroundScheduler()


def get_real_ip_for_limiter():
    """
    Client address used as the rate limit key.

    Only the socket peer address counts. Behind a reverse proxy, set
    PROXY_FIX_X_FOR so ProxyFix rewrites remote_addr from the trusted
    X-Forwarded-For hops; the raw header is never read here.
    """
    return get_remote_address()


# Use memory storage in CI/testing environments, Redis in production
if os.environ.get('RATELIMIT_STORAGE_URI'):
    storage_uri = os.environ.get('RATELIMIT_STORAGE_URI')
elif os.environ.get('CI') or os.environ.get('GITHUB_ACTIONS'):
    storage_uri = 'memory://'
elif os.environ.get('REDIS_URL'):
    storage_uri = os.environ.get('REDIS_URL')
else:
    storage_uri = 'redis://localhost:6379'

limiter = Limiter(
    key_func=get_real_ip_for_limiter,
    default_limits=["1000 per day", "300 per hour"],
    storage_uri=storage_uri,
    strategy="fixed-window"
)
