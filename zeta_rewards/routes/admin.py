"""
Admin routes for Zeta Rewards.

User management, the admin budget, manager allocations, redemption decisions,
audit log listing and departments. All routes require the admin role.
"""

from flask import Blueprint, request, current_app
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from zeta_rewards.auth import role_required
from zeta_rewards.errors import ValidationError, NotFound, BudgetNotFound, InternalError
from zeta_rewards.extensions import db
from zeta_rewards.forms import (
    parse_form,
    ApprovalForm,
    UpdateUserForm,
    FundBudgetForm,
    AllocationForm,
    ResolveRedemptionForm,
    DepartmentForm,
)
from zeta_rewards.models import (
    User,
    Role,
    Department,
    AdminBudget,
    ManagerPoints,
    Redemption,
    RedemptionStatus,
    AuditLog,
)
from zeta_rewards.utils.audit import log_audit
from zeta_rewards.utils.helpers import success
from zeta_rewards.utils.ledger import LedgerService


admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _commit(action):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"{action} failed: {e}", exc_info=True)
        raise InternalError()


def _get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


# -------------------- USER MANAGEMENT --------------------

@admin_bp.route('/users', methods=['GET'])
@role_required('users', 'manage')
def list_users(current_user):
    """List users, optionally filtered by ?role=."""
    query = User.query
    role = request.args.get('role')
    if role:
        try:
            query = query.filter_by(role=Role.from_string(role).value)
        except ValueError:
            raise ValidationError("Unknown role.")
    users = query.order_by(User.created_at.desc(), User.id.desc()).all()
    return success(data=[u.to_dict() for u in users])


@admin_bp.route('/users/<int:user_id>/approve', methods=['PUT'])
@role_required('users', 'manage')
def approve_user(user_id, current_user):
    form = parse_form(ApprovalForm)
    user = _get_user_or_404(user_id)
    user.approved = bool(form.approved.data)
    _commit("User approval")

    log_audit(current_user.id, current_user.role, 'User Approval Toggled',
              f"User {user_id} -> approved: {user.approved}")
    return success(f"User {'approved' if user.approved else 'unapproved'} successfully.")


@admin_bp.route('/users/<int:user_id>/update-role', methods=['PUT'])
@role_required('users', 'manage')
def update_user_role(user_id, current_user):
    """
    Update role, manager, department, joining date and employee code.

    A new role applies on the user's next request: role_required checks the
    stored role, not the claim baked into an earlier token.
    """
    form = parse_form(UpdateUserForm)
    user = _get_user_or_404(user_id)
    changes = []

    if form.role.data:
        user.role = form.role.data
        changes.append(f"set as {form.role.data}")

    if form.manager_id.data is not None:
        if form.manager_id.data == user.id:
            raise ValidationError("A user cannot be their own manager.")
        manager = db.session.get(User, form.manager_id.data)
        if manager is None or manager.role != Role.MANAGER.value:
            raise NotFound("Manager not found.")
        user.manager_id = manager.id
        changes.append(f"under manager {manager.id}")

    if form.department_id.data is not None:
        if db.session.get(Department, form.department_id.data) is None:
            raise NotFound("Department not found.")
        user.department_id = form.department_id.data
        changes.append(f"assigned to department {form.department_id.data}")

    if form.date_of_joining.data is not None:
        user.date_of_joining = form.date_of_joining.data
        changes.append(f"with date of joining {form.date_of_joining.data.isoformat()}")

    if form.employee_id.data:
        user.employee_code = form.employee_id.data.strip()
        changes.append(f"and employee ID {user.employee_code}")

    _commit("User role update")

    log_audit(current_user.id, current_user.role, 'User Role Updated',
              f"User {user_id} " + (" ".join(changes) if changes else "unchanged"))
    return success("User updated.", user=user.to_dict())


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@role_required('users', 'manage')
def delete_user(user_id, current_user):
    if user_id == current_user.id:
        raise ValidationError("You cannot delete your own account.")
    _get_user_or_404(user_id)

    try:
        db.session.execute(delete(User).where(User.id == user_id))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Deleting user {user_id} failed: {e}", exc_info=True)
        raise InternalError()

    log_audit(current_user.id, current_user.role, 'User Deleted', f"User ID {user_id} deleted")
    return success("User deleted successfully.")


# -------------------- BUDGET & ALLOCATION --------------------

@admin_bp.route('/budget', methods=['GET'])
@role_required('budget', 'read')
def get_budget(current_user):
    budget = db.session.get(AdminBudget, current_user.id)
    if budget is None:
        raise BudgetNotFound()
    assigned = db.session.query(func.coalesce(func.sum(ManagerPoints.points_assigned), 0)).scalar()
    return success(data={**budget.to_dict(), "assigned_to_managers": int(assigned or 0)})


@admin_bp.route('/budget', methods=['POST'])
@role_required('budget', 'fund')
def fund_budget(current_user):
    form = parse_form(FundBudgetForm)
    budget = LedgerService(db.session).fund_budget(
        current_user.id, form.points.data, point_value=form.point_value.data
    )
    log_audit(current_user.id, current_user.role, 'Budget Funded', f"Added {form.points.data} points")
    return success("Budget updated.", data=budget.to_dict())


@admin_bp.route('/assign-points', methods=['POST'])
@role_required('allocation', 'create')
def assign_points(current_user):
    form = parse_form(AllocationForm)
    pool = LedgerService(db.session).allocate(current_user.id, form.manager_id.data, form.points.data)
    log_audit(current_user.id, current_user.role, 'Points Assigned',
              f"Assigned {form.points.data} to manager {form.manager_id.data}")
    return success("Points assigned to manager.", data=pool.to_dict())


@admin_bp.route('/assign-points/increment', methods=['POST'])
@role_required('allocation', 'increment')
def increment_points(current_user):
    form = parse_form(AllocationForm)
    pool = LedgerService(db.session).increment_allocation(
        current_user.id, form.manager_id.data, form.points.data
    )
    log_audit(current_user.id, current_user.role, 'Points Incremented',
              f"Added {form.points.data} to manager {form.manager_id.data}")
    return success("Manager points incremented.", data=pool.to_dict())


# -------------------- REDEMPTIONS --------------------

@admin_bp.route('/all/redemptions', methods=['GET'])
@role_required('redemption', 'list_all')
def all_redemptions(current_user):
    query = Redemption.query
    status = request.args.get('status')
    if status:
        try:
            query = query.filter(Redemption.status == RedemptionStatus(status))
        except ValueError:
            raise ValidationError("Unknown status.")
    redemptions = query.order_by(Redemption.requested_at.desc(), Redemption.id.desc()).all()
    return success(data=[r.to_dict() for r in redemptions])


@admin_bp.route('/redemptions/<int:redemption_id>/status', methods=['PUT'])
@role_required('redemption', 'resolve')
def resolve_redemption(redemption_id, current_user):
    form = parse_form(ResolveRedemptionForm)
    redemption = LedgerService(db.session).resolve_redemption(
        current_user.id, redemption_id, form.status.data, form.decline_reason.data
    )
    status = redemption.status.value
    log_audit(current_user.id, current_user.role, f"Redemption {status}",
              f"Redemption ID {redemption_id} {status}"
              + (f": {redemption.decline_reason}" if redemption.decline_reason else ""))
    return success(f"Redemption {status} successfully.", data=redemption.to_dict())


# -------------------- AUDIT LOGS --------------------

@admin_bp.route('/audit-logs', methods=['GET'])
@role_required('audit', 'read')
def audit_logs(current_user):
    logs = AuditLog.query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).all()
    return success(data=[log.to_dict() for log in logs])


# -------------------- DEPARTMENTS --------------------

@admin_bp.route('/departments', methods=['POST'])
@role_required('departments', 'manage')
def create_department(current_user):
    form = parse_form(DepartmentForm)
    name = form.name.data.strip()
    if Department.query.filter_by(name=name).first():
        raise ValidationError("Department already exists.")

    department = Department(name=name)
    db.session.add(department)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Department already exists.")

    log_audit(current_user.id, current_user.role, 'Department Created', name)
    return success("Department created.", 201, data=department.to_dict())


@admin_bp.route('/departments', methods=['GET'])
@role_required('departments', 'manage')
def list_departments(current_user):
    departments = Department.query.order_by(Department.name.asc()).all()
    return success(data=[d.to_dict() for d in departments])


@admin_bp.route('/departments/<int:department_id>', methods=['PUT'])
@role_required('departments', 'manage')
def update_department(department_id, current_user):
    form = parse_form(DepartmentForm)
    department = db.session.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found.")

    name = form.name.data.strip()
    clash = Department.query.filter(Department.name == name, Department.id != department_id).first()
    if clash:
        raise ValidationError("Department already exists.")
    department.name = name
    _commit("Department update")

    log_audit(current_user.id, current_user.role, 'Department Updated', f"Department {department_id} -> {name}")
    return success("Department updated.", data=department.to_dict())


@admin_bp.route('/departments/<int:department_id>', methods=['DELETE'])
@role_required('departments', 'manage')
def delete_department(department_id, current_user):
    department = db.session.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found.")

    User.query.filter_by(department_id=department_id).update({"department_id": None})
    db.session.delete(department)
    _commit("Department delete")

    log_audit(current_user.id, current_user.role, 'Department Deleted', f"Department ID {department_id}")
    return success("Department deleted.")
