"""
Database models for Zeta Rewards.

All SQLAlchemy models are defined here with proper relationships and properties.
Times are stored as UTC in the database.

Ledger tables (admin_budget, manager_points, reward_points, redemptions) are
mutated only through zeta_rewards.utils.ledger.LedgerService.
"""

from datetime import datetime, timezone
import enum

from werkzeug.security import generate_password_hash, check_password_hash

from zeta_rewards.extensions import db
from zeta_rewards.utils.helpers import format_utc_iso


def _utc_now():
    """Helper function for timezone-aware datetime defaults in SQLAlchemy models."""
    return datetime.now(timezone.utc)


class Role(enum.Enum):
    """Enum for user roles."""
    ADMIN = 'admin'
    MANAGER = 'manager'
    EMPLOYEE = 'employee'

    @classmethod
    def from_string(cls, value):
        """Convert string to enum, raising ValueError if invalid."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Invalid Role: {value}")


class RedemptionStatus(enum.Enum):
    """Enum for redemption request statuses."""
    PENDING = 'pending'
    APPROVED = 'approved'
    DECLINED = 'declined'


# -------------------- USERS & ORGANIZATION --------------------

class Department(db.Model):
    __tablename__ = 'departments'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.EMPLOYEE.value)
    approved = db.Column(db.Boolean, default=False, nullable=False)

    manager_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    department_id = db.Column(db.Integer, db.ForeignKey('departments.id', ondelete='SET NULL'), nullable=True)

    # Company-issued employee number, distinct from the primary key
    employee_code = db.Column(db.String(50), nullable=True)
    date_of_joining = db.Column(db.Date, nullable=True)
    contact_info = db.Column(db.String(255), nullable=True)
    profile_picture = db.Column(db.String(500), nullable=True)
    push_token = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=_utc_now)

    manager = db.relationship('User', remote_side=[id], backref=db.backref('reports', lazy='dynamic'))
    department = db.relationship('Department', backref=db.backref('users', lazy='dynamic'))

    __table_args__ = (
        db.Index('ix_users_role', 'role'),
        db.Index('ix_users_manager_id', 'manager_id'),
    )

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash or '', password)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "approved": self.approved,
            "manager_id": self.manager_id,
            "department_id": self.department_id,
            "department_name": self.department.name if self.department else None,
            "employee_id": self.employee_code,
            "date_of_joining": self.date_of_joining.isoformat() if self.date_of_joining else None,
            "contact_info": self.contact_info,
            "profile_picture": self.profile_picture,
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'


# -------------------- LEDGER MODELS --------------------

class AdminBudget(db.Model):
    """One row per admin. remaining_points <= total_points at all times."""
    __tablename__ = 'admin_budget'
    admin_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    remaining_points = db.Column(db.Integer, nullable=False, default=0)
    point_value = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now)

    __table_args__ = (
        db.CheckConstraint('remaining_points >= 0', name='ck_admin_budget_remaining_nonneg'),
        db.CheckConstraint('remaining_points <= total_points', name='ck_admin_budget_remaining_le_total'),
    )

    def to_dict(self):
        return {
            "admin_id": self.admin_id,
            "total_points": self.total_points,
            "remaining_points": self.remaining_points,
            "point_value": float(self.point_value or 0),
        }


class ManagerPoints(db.Model):
    __tablename__ = 'manager_points'
    id = db.Column(db.Integer, primary_key=True)
    manager_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    points_assigned = db.Column(db.Integer, nullable=False, default=0)
    remaining_points = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=_utc_now)

    manager = db.relationship('User', backref=db.backref('point_pool', uselist=False, passive_deletes=True))

    __table_args__ = (
        db.CheckConstraint('remaining_points >= 0', name='ck_manager_points_remaining_nonneg'),
    )

    def to_dict(self):
        return {
            "manager_id": self.manager_id,
            "points_assigned": self.points_assigned,
            "remaining_points": self.remaining_points,
        }


class RewardPoints(db.Model):
    """Append-only ledger of point grants."""
    __tablename__ = 'reward_points'
    id = db.Column(db.Integer, primary_key=True)
    giver_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    receiver_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    points = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=True)
    reason_id = db.Column(db.Integer, db.ForeignKey('rewardreason.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    __table_args__ = (
        db.Index('ix_reward_points_receiver_id', 'receiver_id'),
        db.Index('ix_reward_points_giver_id', 'giver_id'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "giver_id": self.giver_id,
            "receiver_id": self.receiver_id,
            "points": self.points,
            "reason": self.reason,
            "reason_id": self.reason_id,
            "created_at": format_utc_iso(self.created_at),
        }


class Redemption(db.Model):
    __tablename__ = 'redemptions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    reward_title = db.Column(db.String(200), nullable=False)
    required_points = db.Column(db.Integer, nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey('rewardcategory.id', ondelete='SET NULL'), nullable=True)
    status = db.Column(
        db.Enum(RedemptionStatus, values_callable=lambda x: [e.value for e in x]),
        default=RedemptionStatus.PENDING,
        nullable=False,
    )
    decline_reason = db.Column(db.Text, nullable=True)
    requested_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    resolved_at = db.Column(db.DateTime, nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    user = db.relationship('User', foreign_keys=[user_id],
                           backref=db.backref('redemptions', lazy='dynamic', passive_deletes=True))

    __table_args__ = (
        db.Index('ix_redemptions_user_status', 'user_id', 'status'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "reward_title": self.reward_title,
            "required_points": self.required_points,
            "category_id": self.category_id,
            "status": self.status.value,
            "decline_reason": self.decline_reason,
            "requested_at": format_utc_iso(self.requested_at),
        }


# -------------------- CATALOG MODELS --------------------

class RewardCategory(db.Model):
    __tablename__ = 'rewardcategory'
    id = db.Column(db.Integer, primary_key=True)
    category_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True, default='')
    img = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now)

    def to_dict(self):
        return {
            "id": self.id,
            "category_name": self.category_name,
            "description": self.description,
            "img": self.img,
        }


class RewardReason(db.Model):
    __tablename__ = 'rewardreason'
    id = db.Column(db.Integer, primary_key=True)
    reason = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True, default='')
    img = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now)

    def to_dict(self):
        return {
            "id": self.id,
            "reason": self.reason,
            "description": self.description,
            "img": self.img,
        }


class Reward(db.Model):
    __tablename__ = 'rewards'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True, default='')
    points_required = db.Column(db.Integer, nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey('rewardcategory.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now)

    category = db.relationship('RewardCategory', backref=db.backref('rewards', lazy='dynamic'))

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "points_required": self.points_required,
            "category_id": self.category_id,
            "category_name": self.category.category_name if self.category else None,
            "category_img": self.category.img if self.category else None,
        }


# -------------------- SOCIAL FEED MODELS --------------------

class Post(db.Model):
    __tablename__ = 'posts'
    id = db.Column(db.Integer, primary_key=True)
    giver_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    receiver_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    reason = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(500), nullable=True)
    caption = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False, index=True)

    giver = db.relationship('User', foreign_keys=[giver_id])
    receiver = db.relationship('User', foreign_keys=[receiver_id])
    likes = db.relationship('Like', backref='post', cascade='all, delete-orphan')
    comments = db.relationship('Comment', backref='post', cascade='all, delete-orphan')


class Like(db.Model):
    __tablename__ = 'likes'
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now)

    __table_args__ = (
        db.UniqueConstraint('post_id', 'user_id', name='uq_likes_post_user'),
    )


class Comment(db.Model):
    __tablename__ = 'comments'
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    comment_text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    user = db.relationship('User')
    likes = db.relationship('CommentLike', backref='comment', cascade='all, delete-orphan')

    __table_args__ = (
        db.Index('ix_comments_post_id', 'post_id'),
    )


class CommentLike(db.Model):
    __tablename__ = 'comment_likes'
    id = db.Column(db.Integer, primary_key=True)
    comment_id = db.Column(db.Integer, db.ForeignKey('comments.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now)

    __table_args__ = (
        db.UniqueConstraint('comment_id', 'user_id', name='uq_comment_likes_comment_user'),
    )


# -------------------- AUDIT & NOTIFICATIONS --------------------

class AuditLog(db.Model):
    __tablename__ = 'audit_logs'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role = db.Column(db.String(20), nullable=True)
    action = db.Column(db.String(255), nullable=False)
    details = db.Column(db.Text, nullable=True, default='')
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False, index=True)

    user = db.relationship('User', backref=db.backref('audit_logs', lazy='dynamic', passive_deletes=True))

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "action": self.action,
            "details": self.details,
            "name": self.user.name if self.user else None,
            "email": self.user.email if self.user else None,
            "created_at": format_utc_iso(self.created_at),
        }


class Notification(db.Model):
    __tablename__ = 'notifications'
    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    message = db.Column(db.String(500), nullable=False)
    type = db.Column(db.String(50), nullable=False, default='info')  # info|reward|employee_request
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "message": self.message,
            "type": self.type,
            "is_read": self.is_read,
            "created_at": format_utc_iso(self.created_at),
        }
