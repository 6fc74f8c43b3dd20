"""
WSGI entry point for Zeta Rewards.

For gunicorn: wsgi:app
"""

from zeta_rewards import app
from zeta_rewards.extensions import db, migrate

__all__ = ["app", "db", "migrate"]


if __name__ == "__main__":
    app.run(debug=app.config.get("ENV") == "development")
