"""
Main routes for Zeta Rewards.

Public utility routes (no authentication required).
"""

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from zeta_rewards.extensions import db

# Create blueprint
main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health_check():
    """Simple health check endpoint for uptime monitoring."""
    try:
        db.session.execute(text('SELECT 1'))
        return 'ok', 200
    except SQLAlchemyError:
        current_app.logger.exception('Health check failed')
        return jsonify(status='error', error='Database error'), 500
