"""
Manager routes for Zeta Rewards.
"""

from flask import Blueprint

from zeta_rewards.auth import role_required
from zeta_rewards.models import User
from zeta_rewards.utils.helpers import success


manager_bp = Blueprint('manager', __name__, url_prefix='/api/manager')


@manager_bp.route('/employees', methods=['GET'])
@role_required('team', 'read')
def my_employees(current_user):
    """Users whose manager is the caller."""
    employees = User.query.filter_by(manager_id=current_user.id).order_by(User.name.asc()).all()
    return success(data=[e.to_dict() for e in employees])
