"""
Employee routes for Zeta Rewards.

Profile, points, redemption requests and messages to the manager. /me is
open to every role and reports the points summary that fits the caller.
"""

from flask import Blueprint, current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from zeta_rewards.auth import role_required, EMPLOYEE, MANAGER, ADMIN
from zeta_rewards.errors import ValidationError, NotFound, InternalError
from zeta_rewards.extensions import db
from zeta_rewards.forms import (
    parse_form,
    submitted_fields,
    ProfileForm,
    PasswordChangeForm,
    RedemptionRequestForm,
    NotificationRequestForm,
)
from zeta_rewards.models import User, AdminBudget, ManagerPoints, Redemption
from zeta_rewards.utils.audit import log_audit
from zeta_rewards.utils.balance import load_balance
from zeta_rewards.utils.helpers import success
from zeta_rewards.utils.ledger import LedgerService
from zeta_rewards.utils.notifications import notify_manager_request


employee_bp = Blueprint('employee', __name__, url_prefix='/api/employee')


def _load_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def _points_summary(user):
    if user.role == EMPLOYEE:
        balance = load_balance(db.session, user.id)
        return {
            "employee_earned_points": balance.earned,
            "employee_redeemed_points": balance.redeemed,
            "employee_pending_points": balance.pending,
            "employee_available_points": balance.available,
        }

    if user.role == MANAGER:
        pool = ManagerPoints.query.filter_by(manager_id=user.id).first()
        return {
            "manager_assigned_points": pool.points_assigned if pool else 0,
            "manager_remaining_points": pool.remaining_points if pool else 0,
        }

    if user.role == ADMIN:
        budget = db.session.get(AdminBudget, user.id)
        assigned = db.session.query(func.coalesce(func.sum(ManagerPoints.points_assigned), 0)).scalar()
        return {
            "admin_total_points": budget.total_points if budget else 0,
            "admin_remaining_points": budget.remaining_points if budget else 0,
            "admin_point_value": float(budget.point_value) if budget else 0.0,
            "admin_assigned_points": int(assigned or 0),
        }

    return {}


@employee_bp.route('/me', methods=['GET'])
@role_required('profile', 'read')
def me(current_user):
    user = _load_user(current_user.id)
    data = user.to_dict()

    data["manager"] = None
    if user.role == EMPLOYEE and user.manager is not None:
        data["manager"] = {
            "id": user.manager.id,
            "name": user.manager.name,
            "email": user.manager.email,
            "profile_picture": user.manager.profile_picture,
        }

    data.update(_points_summary(user))
    return success(data=data)


@employee_bp.route('/points', methods=['GET'])
@role_required('points', 'read')
def points(current_user):
    balance = load_balance(db.session, current_user.id)
    return success(
        earned_points=balance.earned,
        redeemed_points=balance.redeemed,
        pending_points=balance.pending,
        available_points=balance.available,
    )


@employee_bp.route('/manager', methods=['GET'])
@role_required('manager_info', 'read')
def my_manager(current_user):
    user = _load_user(current_user.id)
    if user.manager is None:
        raise NotFound("No manager assigned.")
    manager = user.manager
    return success(data={"id": manager.id, "name": manager.name, "email": manager.email, "role": manager.role})


@employee_bp.route('/profile', methods=['PUT'])
@role_required('profile', 'update')
def update_profile(current_user):
    form = parse_form(ProfileForm)
    fields = submitted_fields(form)
    if not fields:
        raise ValidationError("At least one field required for update.")

    user = _load_user(current_user.id)
    for name in fields:
        setattr(user, name, form[name].data.strip())

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Profile update failed for user {user.id}: {e}", exc_info=True)
        raise InternalError()

    log_audit(user.id, user.role, 'Updated Profile', ", ".join(fields))
    return success("Profile updated.", data=user.to_dict())


@employee_bp.route('/password', methods=['PUT'])
@role_required('profile', 'update')
def change_password(current_user):
    form = parse_form(PasswordChangeForm)
    user = _load_user(current_user.id)
    if not user.check_password(form.current_password.data):
        raise ValidationError("Incorrect current password.")

    user.set_password(form.new_password.data)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Password change failed for user {user.id}: {e}", exc_info=True)
        raise InternalError()

    log_audit(user.id, user.role, 'Changed Password')
    return success("Password updated successfully.")


# -------------------- REDEMPTIONS --------------------

@employee_bp.route('/redemptions', methods=['POST'])
@role_required('redemption', 'request')
def request_redemption(current_user):
    form = parse_form(RedemptionRequestForm)
    redemption = LedgerService(db.session).request_redemption(current_user.id, form.reward_id.data)
    log_audit(current_user.id, current_user.role, 'Redemption Requested',
              f"Requested {redemption.reward_title} worth {redemption.required_points} points")
    return success("Redemption request submitted and pending approval.", 201, data=redemption.to_dict())


@employee_bp.route('/redemptions', methods=['GET'])
@role_required('redemption', 'list_own')
def my_redemptions(current_user):
    redemptions = (
        Redemption.query
        .filter_by(user_id=current_user.id)
        .order_by(Redemption.requested_at.desc(), Redemption.id.desc())
        .all()
    )
    return success(data=[r.to_dict() for r in redemptions])


# -------------------- NOTIFICATIONS --------------------

@employee_bp.route('/notifications/request', methods=['POST'])
@role_required('notifications', 'request')
def request_notification(current_user):
    form = parse_form(NotificationRequestForm)
    user = _load_user(current_user.id)
    if not user.manager_id:
        raise ValidationError("No manager assigned.")

    message = form.message.data.strip()
    try:
        notify_manager_request(user, message)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Notification request failed for user {user.id}: {e}", exc_info=True)
        raise InternalError()

    log_audit(user.id, user.role, 'Notification Sent', message)
    return success("Notification sent to manager.")
