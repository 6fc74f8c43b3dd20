"""
Authentication and authorization utilities for Zeta Rewards.

Bearer-token identity comes from flask-jwt-extended. Every role check in the
routes goes through is_allowed(), which reads the POLICY table below.
Ownership rules (a manager may only reward their own reports, etc.) live in
the services, not here.
"""

from collections import namedtuple
from functools import wraps

from flask import jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    get_current_user,
    verify_jwt_in_request,
)

from zeta_rewards.errors import Forbidden
from zeta_rewards.extensions import db
from zeta_rewards.models import User


ADMIN = 'admin'
MANAGER = 'manager'
EMPLOYEE = 'employee'
ALL_ROLES = frozenset({ADMIN, MANAGER, EMPLOYEE})


# -------------------- AUTHORIZATION POLICY --------------------

# (resource, action) -> roles allowed to perform it
POLICY = {
    ('budget', 'read'): {ADMIN},
    ('budget', 'fund'): {ADMIN},
    ('allocation', 'create'): {ADMIN},
    ('allocation', 'increment'): {ADMIN},
    ('reward', 'issue'): {ADMIN, MANAGER},
    ('redemption', 'request'): {EMPLOYEE},
    ('redemption', 'list_own'): {EMPLOYEE},
    ('redemption', 'list_all'): {ADMIN},
    ('redemption', 'resolve'): {ADMIN},
    ('users', 'manage'): {ADMIN},
    ('team', 'read'): {MANAGER},
    ('departments', 'manage'): {ADMIN},
    ('reasons', 'read'): {ADMIN, MANAGER},
    ('reasons', 'manage'): {ADMIN},
    ('categories', 'manage'): {ADMIN},
    ('catalog', 'read'): ALL_ROLES,
    ('catalog', 'manage'): {ADMIN},
    ('audit', 'read'): {ADMIN},
    ('profile', 'read'): ALL_ROLES,
    ('profile', 'update'): {EMPLOYEE},
    ('points', 'read'): {EMPLOYEE},
    ('manager_info', 'read'): {EMPLOYEE},
    ('notifications', 'request'): {EMPLOYEE},
    ('push_token', 'register'): ALL_ROLES,
    ('posts', 'create'): {ADMIN, MANAGER},
    ('posts', 'read'): ALL_ROLES,
    ('posts', 'react'): ALL_ROLES,
    ('posts', 'edit'): {ADMIN, MANAGER},
    ('posts', 'delete'): {ADMIN},
    ('leaderboard', 'managers'): {ADMIN},
    ('leaderboard', 'team'): {ADMIN, MANAGER},
    ('leaderboard', 'peers'): {EMPLOYEE},
}


def is_allowed(role, resource, action):
    """Return True when ``role`` may perform ``action`` on ``resource``.

    Unknown (resource, action) pairs are denied.
    """
    return role in POLICY.get((resource, action), ())


# -------------------- IDENTITY --------------------

CurrentUser = namedtuple('CurrentUser', ['id', 'role'])


def issue_token(user):
    """Create a bearer token carrying the user id and role."""
    return create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role},
    )


def get_current_identity():
    """
    Return the (id, role) pair of the caller.

    The role comes from the user row loaded for this request, not from the
    token's role claim, so a role change applies to tokens already issued.
    """
    user = get_current_user()
    return CurrentUser(user.id, user.role)


def role_required(resource, action):
    """
    Decorator that requires a valid bearer token for an active account whose
    current role is allowed to perform ``action`` on ``resource``.

    The wrapped view receives the caller as its ``current_user`` keyword.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            current_user = get_current_identity()
            if not is_allowed(current_user.role, resource, action):
                current_app.logger.info(
                    f"Denied {current_user.role} user {current_user.id} on {resource}:{action}"
                )
                raise Forbidden()
            return f(*args, current_user=current_user, **kwargs)
        return decorated_function
    return decorator


# -------------------- JWT CALLBACKS --------------------

def register_jwt_callbacks(jwt):
    """Load the caller's account and render token failures in the API's error shape."""

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_payload):
        # Deleted or unapproved accounts lose access immediately
        user = db.session.get(User, int(jwt_payload["sub"]))
        if user is None or not user.approved:
            return None
        return user

    @jwt.user_lookup_error_loader
    def inactive_user(jwt_header, jwt_payload):
        return jsonify({"status": "error", "message": "Account is not active"}), 401

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"status": "error", "message": "Access Denied: No Token Provided"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"status": "error", "message": "Invalid or Expired Token"}), 403

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"status": "error", "message": "Token has expired"}), 401
