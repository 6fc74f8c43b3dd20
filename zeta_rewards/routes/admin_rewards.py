"""
Reward catalog routes for Zeta Rewards.

Reward reasons, reward categories and the rewards catalog. Image fields
are plain URLs; uploads are not handled here.
"""

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from zeta_rewards.auth import role_required
from zeta_rewards.errors import ValidationError, NotFound, InternalError
from zeta_rewards.extensions import db
from zeta_rewards.forms import (
    parse_form,
    submitted_fields,
    RewardReasonForm,
    RewardReasonUpdateForm,
    RewardCategoryForm,
    RewardCategoryUpdateForm,
    RewardForm,
    RewardUpdateForm,
)
from zeta_rewards.models import RewardReason, RewardCategory, Reward
from zeta_rewards.utils.audit import log_audit
from zeta_rewards.utils.helpers import success


admin_rewards_bp = Blueprint('admin_rewards', __name__, url_prefix='/api/admin')


def _save(action, obj=None):
    try:
        if obj is not None:
            db.session.add(obj)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"{action} failed: {e}", exc_info=True)
        raise InternalError()


def _remove(action, obj):
    try:
        db.session.delete(obj)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"{action} failed: {e}", exc_info=True)
        raise InternalError()


def _apply_update(obj, form):
    """Copy the submitted fields of ``form`` onto ``obj``."""
    fields = submitted_fields(form)
    if not fields:
        raise ValidationError("At least one field required for update.")
    for name in fields:
        value = form[name].data
        setattr(obj, name, value.strip() if isinstance(value, str) else value)
    return fields


def _get_or_404(model, object_id, label):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFound(f"{label} not found.")
    return obj


def _check_category(category_id):
    if category_id is not None and db.session.get(RewardCategory, category_id) is None:
        raise NotFound("Reward category not found.")


# -------------------- REWARD REASONS --------------------

@admin_rewards_bp.route('/rewardreasons', methods=['POST'])
@role_required('reasons', 'manage')
def create_reason(current_user):
    form = parse_form(RewardReasonForm)
    reason = RewardReason(
        reason=form.reason.data.strip(),
        description=form.description.data or '',
        img=form.img.data or None,
    )
    _save("Reward reason create", reason)
    log_audit(current_user.id, current_user.role, 'Reward Reason Created',
              f"Reason ID {reason.id}: {reason.reason}")
    return success("Reward reason created successfully.", 201, data=reason.to_dict())


@admin_rewards_bp.route('/rewardreasons', methods=['GET'])
@role_required('reasons', 'read')
def list_reasons(current_user):
    reasons = RewardReason.query.order_by(RewardReason.created_at.desc(), RewardReason.id.desc()).all()
    return success(data=[r.to_dict() for r in reasons])


@admin_rewards_bp.route('/rewardreasons/<int:reason_id>', methods=['GET'])
@role_required('reasons', 'manage')
def get_reason(reason_id, current_user):
    return success(data=_get_or_404(RewardReason, reason_id, "Reward reason").to_dict())


@admin_rewards_bp.route('/rewardreasons/<int:reason_id>', methods=['PUT'])
@role_required('reasons', 'manage')
def update_reason(reason_id, current_user):
    form = parse_form(RewardReasonUpdateForm)
    reason = _get_or_404(RewardReason, reason_id, "Reward reason")
    _apply_update(reason, form)
    _save("Reward reason update")
    log_audit(current_user.id, current_user.role, 'Reward Reason Updated', f"Reason ID {reason_id} updated")
    return success("Reward reason updated successfully.", data=reason.to_dict())


@admin_rewards_bp.route('/rewardreasons/<int:reason_id>', methods=['DELETE'])
@role_required('reasons', 'manage')
def delete_reason(reason_id, current_user):
    reason = _get_or_404(RewardReason, reason_id, "Reward reason")
    _remove("Reward reason delete", reason)
    log_audit(current_user.id, current_user.role, 'Reward Reason Deleted', f"Reason ID {reason_id} deleted")
    return success("Reward reason deleted successfully.")


# -------------------- REWARD CATEGORIES --------------------

@admin_rewards_bp.route('/rewardcategories', methods=['POST'])
@role_required('categories', 'manage')
def create_category(current_user):
    form = parse_form(RewardCategoryForm)
    category = RewardCategory(
        category_name=form.category_name.data.strip(),
        description=form.description.data or '',
        img=form.img.data or None,
    )
    _save("Reward category create", category)
    log_audit(current_user.id, current_user.role, 'Reward Category Created',
              f"Category ID {category.id}: {category.category_name}")
    return success("Reward category created successfully.", 201, data=category.to_dict())


@admin_rewards_bp.route('/rewardcategories', methods=['GET'])
@role_required('categories', 'manage')
def list_categories(current_user):
    categories = RewardCategory.query.order_by(RewardCategory.created_at.desc(), RewardCategory.id.desc()).all()
    return success(data=[c.to_dict() for c in categories])


@admin_rewards_bp.route('/rewardcategories/<int:category_id>', methods=['GET'])
@role_required('categories', 'manage')
def get_category(category_id, current_user):
    return success(data=_get_or_404(RewardCategory, category_id, "Reward category").to_dict())


@admin_rewards_bp.route('/rewardcategories/<int:category_id>', methods=['PUT'])
@role_required('categories', 'manage')
def update_category(category_id, current_user):
    form = parse_form(RewardCategoryUpdateForm)
    category = _get_or_404(RewardCategory, category_id, "Reward category")
    _apply_update(category, form)
    _save("Reward category update")
    log_audit(current_user.id, current_user.role, 'Reward Category Updated', f"Category ID {category_id} updated")
    return success("Reward category updated successfully.", data=category.to_dict())


@admin_rewards_bp.route('/rewardcategories/<int:category_id>', methods=['DELETE'])
@role_required('categories', 'manage')
def delete_category(category_id, current_user):
    category = _get_or_404(RewardCategory, category_id, "Reward category")
    Reward.query.filter_by(category_id=category_id).update({"category_id": None})
    _remove("Reward category delete", category)
    log_audit(current_user.id, current_user.role, 'Reward Category Deleted', f"Category ID {category_id} deleted")
    return success("Reward category deleted successfully.")


# -------------------- REWARDS CATALOG --------------------

@admin_rewards_bp.route('/rewards/catalog', methods=['GET'])
@role_required('catalog', 'read')
def rewards_catalog(current_user):
    """Catalog ordered by category name, then by price."""
    rewards = (
        Reward.query
        .outerjoin(RewardCategory, Reward.category_id == RewardCategory.id)
        .order_by(RewardCategory.category_name.asc(), Reward.points_required.asc(), Reward.id.asc())
        .all()
    )
    return success(data=[r.to_dict() for r in rewards])


@admin_rewards_bp.route('/rewards', methods=['POST'])
@role_required('catalog', 'manage')
def create_reward(current_user):
    form = parse_form(RewardForm)
    _check_category(form.category_id.data)
    reward = Reward(
        title=form.title.data.strip(),
        description=form.description.data or '',
        points_required=form.points_required.data,
        category_id=form.category_id.data,
    )
    _save("Reward create", reward)
    log_audit(current_user.id, current_user.role, 'Reward Created',
              f"Reward '{reward.title}' created with ID {reward.id}")
    return success("Reward created successfully.", 201, data=reward.to_dict())


@admin_rewards_bp.route('/rewards/<int:reward_id>', methods=['PUT'])
@role_required('catalog', 'manage')
def update_reward(reward_id, current_user):
    form = parse_form(RewardUpdateForm)
    reward = _get_or_404(Reward, reward_id, "Reward")
    _check_category(form.category_id.data)
    _apply_update(reward, form)
    _save("Reward update")
    log_audit(current_user.id, current_user.role, 'Reward Updated', f"Reward ID {reward_id} updated")
    return success("Reward updated successfully.", data=reward.to_dict())
