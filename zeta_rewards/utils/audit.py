"""
Audit trail helpers.

Audit entries are written in their own commit after the operation they
describe. Writing one must never fail the request that triggered it.
"""

from flask import current_app

from zeta_rewards.extensions import db
from zeta_rewards.models import AuditLog


def log_audit(user_id, role, action, details=''):
    """
    Persist an audit entry. Best-effort: errors are logged and swallowed.

    Returns the AuditLog id, or None if it could not be saved.
    """
    try:
        entry = AuditLog(user_id=user_id, role=role, action=action, details=details or '')
        db.session.add(entry)
        db.session.commit()
        return entry.id
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Audit logger error for '{action}' by user {user_id}: {e}")
        return None
