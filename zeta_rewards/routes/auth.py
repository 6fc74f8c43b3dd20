"""
Authentication routes for Zeta Rewards.

Signup, login and push-token registration. New accounts are employees and
must be approved by an admin before they can log in.
"""

from flask import Blueprint, current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from zeta_rewards.auth import issue_token, role_required
from zeta_rewards.errors import ValidationError, Forbidden, InternalError, InvalidCredentials
from zeta_rewards.extensions import db, limiter
from zeta_rewards.forms import parse_form, SignupForm, LoginForm, ForgotPasswordForm, PushTokenForm
from zeta_rewards.models import User, Role
from zeta_rewards.utils.audit import log_audit
from zeta_rewards.utils.helpers import success


auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/signup', methods=['POST'])
@limiter.limit("10 per minute")
def signup():
    form = parse_form(SignupForm)
    email = form.email.data.strip().lower()

    if User.query.filter_by(email=email).first():
        raise ValidationError("Email already registered.")

    user = User(name=form.name.data.strip(), email=email, role=Role.EMPLOYEE.value, approved=False)
    user.set_password(form.password.data)
    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Email already registered.")
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Signup failed for {email}: {e}", exc_info=True)
        raise InternalError("Signup failed.")

    current_app.logger.info(f"New signup awaiting approval: user {user.id}")
    return success("Signup successful. Await admin approval.", 201)


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    form = parse_form(LoginForm)
    email = form.email.data.strip().lower()

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(form.password.data):
        current_app.logger.info(f"Failed login attempt for {email}")
        raise InvalidCredentials()

    if not user.approved:
        raise Forbidden("Account not yet approved by admin.")

    token = issue_token(user)
    log_audit(user.id, user.role, 'Login', 'User logged in')

    return success(
        "Login successful.",
        token=token,
        user={
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "approved": user.approved,
        },
    )


@auth_bp.route('/forgot-password', methods=['POST'])
@limiter.limit("5 per minute")
def forgot_password():
    """Mock reset: the response never reveals whether the email exists."""
    form = parse_form(ForgotPasswordForm)
    email = form.email.data.strip().lower()
    user = User.query.filter_by(email=email).first()
    if user:
        current_app.logger.info(f"Password reset requested for user {user.id} (mock, nothing sent)")
    return success("If the email exists, a reset link has been sent.")


@auth_bp.route('/push-token', methods=['PUT'])
@role_required('push_token', 'register')
def register_push_token(current_user):
    form = parse_form(PushTokenForm)
    user = db.session.get(User, current_user.id)
    if user is None:
        raise Forbidden("Account no longer exists.")

    try:
        user.push_token = form.token.data.strip()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Saving push token failed for user {user.id}: {e}", exc_info=True)
        raise InternalError()

    return success("Push token saved.")
