"""
Leaderboard routes for Zeta Rewards.
"""

from flask import Blueprint
from sqlalchemy import func

from zeta_rewards.auth import role_required, MANAGER
from zeta_rewards.errors import Forbidden, ValidationError
from zeta_rewards.extensions import db
from zeta_rewards.models import User, Department, ManagerPoints, RewardPoints, Role
from zeta_rewards.utils.helpers import success


leaderboard_bp = Blueprint('leaderboard', __name__, url_prefix='/api/leaderboard')


def _team_standings(manager_id, order_by_points):
    """Employees reporting to ``manager_id`` with their total earned points."""
    total_points = func.coalesce(func.sum(RewardPoints.points), 0).label('total_points')
    query = (
        db.session.query(User.id, User.name, User.profile_picture, Department.name.label('department_name'), total_points)
        .outerjoin(Department, User.department_id == Department.id)
        .outerjoin(RewardPoints, RewardPoints.receiver_id == User.id)
        .filter(User.manager_id == manager_id, User.role == Role.EMPLOYEE.value)
        .group_by(User.id, User.name, User.profile_picture, Department.name)
    )
    if order_by_points:
        query = query.order_by(total_points.desc(), User.name.asc())
    else:
        query = query.order_by(User.name.asc())
    return [
        {
            "id": row.id,
            "name": row.name,
            "profile_picture": row.profile_picture,
            "department_name": row.department_name,
            "total_points": int(row.total_points or 0),
        }
        for row in query.all()
    ]


@leaderboard_bp.route('/managers', methods=['GET'])
@role_required('leaderboard', 'managers')
def managers(current_user):
    """Managers with the points assigned to them, for allocation screens."""
    rows = (
        db.session.query(
            User.id,
            User.name,
            User.profile_picture,
            Department.name.label('department_name'),
            func.coalesce(ManagerPoints.points_assigned, 0).label('total_points'),
        )
        .outerjoin(Department, User.department_id == Department.id)
        .outerjoin(ManagerPoints, ManagerPoints.manager_id == User.id)
        .filter(User.role == Role.MANAGER.value)
        .order_by(User.name.asc())
        .all()
    )
    return success(data=[
        {
            "id": row.id,
            "name": row.name,
            "profile_picture": row.profile_picture,
            "department_name": row.department_name,
            "total_points": int(row.total_points or 0),
        }
        for row in rows
    ])


@leaderboard_bp.route('/managers/<int:manager_id>/employees', methods=['GET'])
@role_required('leaderboard', 'team')
def manager_employees(manager_id, current_user):
    if current_user.role == MANAGER and manager_id != current_user.id:
        raise Forbidden("Access denied to other manager's employees.")
    return success(data=_team_standings(manager_id, order_by_points=False))


@leaderboard_bp.route('/employee/peers', methods=['GET'])
@role_required('leaderboard', 'peers')
def employee_peers(current_user):
    """Everyone under the caller's manager, highest earners first."""
    user = db.session.get(User, current_user.id)
    if user is None or not user.manager_id:
        raise ValidationError("No manager assigned.")
    return success(data=_team_standings(user.manager_id, order_by_points=True))
