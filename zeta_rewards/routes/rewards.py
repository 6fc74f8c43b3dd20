"""
Reward issuance route.

Managers reward their own reports out of their point pool; admins reward
anyone out of their budget. The ledger entry and the recognition post are
written together; the receiver's notification, the audit entry and the push
broadcast follow the commit and cannot undo it.
"""

from flask import Blueprint

from zeta_rewards.auth import role_required
from zeta_rewards.extensions import db
from zeta_rewards.forms import parse_form, IssueRewardForm
from zeta_rewards.models import User
from zeta_rewards.utils.audit import log_audit
from zeta_rewards.utils.helpers import success
from zeta_rewards.utils.ledger import LedgerService
from zeta_rewards.utils.notifications import notify_reward_issued


rewards_bp = Blueprint('rewards', __name__, url_prefix='/api/rewards')


@rewards_bp.route('/issue', methods=['POST'])
@role_required('reward', 'issue')
def issue_reward(current_user):
    form = parse_form(IssueRewardForm)

    entry, post = LedgerService(db.session).issue_reward(
        giver_id=current_user.id,
        giver_role=current_user.role,
        receiver_id=form.receiver_id.data,
        points=form.points.data,
        reason=form.reason.data,
        reason_id=form.reason_id.data,
        caption=form.caption.data,
        image_url=form.image_url.data or None,
    )

    giver = db.session.get(User, current_user.id)
    receiver = db.session.get(User, entry.receiver_id)
    notify_reward_issued(entry, giver, receiver)
    log_audit(current_user.id, current_user.role, 'Reward Issued',
              f"Gave {entry.points} points to user {entry.receiver_id}: {entry.reason}")

    return success("Reward issued successfully.", 201, data=entry.to_dict(), post_id=post.id)
