"""
Social feed routes for Zeta Rewards.

Recognition posts, likes and comments. Posts created here are display-only:
they carry a points figure but never touch the ledger.
"""

from flask import Blueprint, current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from zeta_rewards.auth import role_required, ADMIN, MANAGER
from zeta_rewards.errors import ValidationError, NotFound, Forbidden, InternalError
from zeta_rewards.extensions import db
from zeta_rewards.forms import parse_form, submitted_fields, PostForm, PostEditForm, CommentForm
from zeta_rewards.models import Post, Like, Comment, CommentLike, User
from zeta_rewards.utils.audit import log_audit
from zeta_rewards.utils.feed import build_feed_page
from zeta_rewards.utils.helpers import success, get_pagination


posts_bp = Blueprint('posts', __name__, url_prefix='/api/posts')


def _commit(action):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"{action} failed: {e}", exc_info=True)
        raise InternalError()


def _get_post(post_id):
    post = db.session.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found.")
    return post


def _get_comment(comment_id):
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found.")
    return comment


@posts_bp.route('', methods=['POST'])
@role_required('posts', 'create')
def create_post(current_user):
    form = parse_form(PostForm)
    if db.session.get(User, form.receiver_id.data) is None:
        raise NotFound("Receiver not found.")

    post = Post(
        giver_id=current_user.id,
        receiver_id=form.receiver_id.data,
        points=form.points.data or 0,
        reason=form.reason.data,
        caption=form.caption.data,
        image_url=form.image_url.data or None,
    )
    db.session.add(post)
    _commit("Post create")

    log_audit(current_user.id, current_user.role, 'Post Created',
              f"To: {post.receiver_id}, Points: {post.points}")
    return success("Post created.", 201, post_id=post.id)


@posts_bp.route('/feed', methods=['GET'])
@role_required('posts', 'read')
def feed(current_user):
    limit, offset = get_pagination()
    page = build_feed_page(db.session, current_user.id, limit, offset)
    return success(**page)


def _toggle(model, owner_filter):
    """Delete the existing reaction row or insert a new one. Returns True when liked."""
    existing = model.query.filter_by(**owner_filter).first()
    try:
        if existing:
            db.session.delete(existing)
            db.session.commit()
            return False
        db.session.add(model(**owner_filter))
        db.session.commit()
        return True
    except IntegrityError:
        # The same reaction was inserted concurrently; it is liked either way
        db.session.rollback()
        return True
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Toggling {model.__name__} failed: {e}", exc_info=True)
        raise InternalError()


@posts_bp.route('/<int:post_id>/like', methods=['POST'])
@role_required('posts', 'react')
def toggle_like(post_id, current_user):
    _get_post(post_id)
    liked = _toggle(Like, {"post_id": post_id, "user_id": current_user.id})
    return success("Liked" if liked else "Unliked", liked=liked)


@posts_bp.route('/<int:post_id>/comment', methods=['POST'])
@role_required('posts', 'react')
def add_comment(post_id, current_user):
    form = parse_form(CommentForm)
    _get_post(post_id)

    comment = Comment(post_id=post_id, user_id=current_user.id, comment_text=form.comment_text.data.strip())
    db.session.add(comment)
    _commit("Comment create")

    log_audit(current_user.id, current_user.role, 'Comment Added', f"Post {post_id}")
    return success("Comment added", 201, comment_id=comment.id)


@posts_bp.route('/comments/<int:comment_id>/like', methods=['POST'])
@role_required('posts', 'react')
def toggle_comment_like(comment_id, current_user):
    _get_comment(comment_id)
    liked = _toggle(CommentLike, {"comment_id": comment_id, "user_id": current_user.id})
    return success("Liked comment" if liked else "Unliked comment", liked=liked)


@posts_bp.route('/comments/<int:comment_id>', methods=['DELETE'])
@role_required('posts', 'react')
def delete_comment(comment_id, current_user):
    comment = _get_comment(comment_id)
    if comment.user_id != current_user.id and current_user.role != ADMIN:
        raise Forbidden("Not allowed to delete this comment.")

    db.session.delete(comment)
    _commit("Comment delete")

    log_audit(current_user.id, current_user.role, 'Comment Deleted', f"Comment ID: {comment_id}")
    return success("Comment deleted")


@posts_bp.route('/<int:post_id>', methods=['PUT'])
@role_required('posts', 'edit')
def edit_post(post_id, current_user):
    """Edit reason, caption or image. Managers may only edit their own posts."""
    form = parse_form(PostEditForm)
    post = _get_post(post_id)
    if current_user.role == MANAGER and post.giver_id != current_user.id:
        raise Forbidden("Not allowed to edit this post.")

    fields = submitted_fields(form)
    if not fields:
        raise ValidationError("At least one field required for update.")
    for name in fields:
        setattr(post, name, form[name].data)
    _commit("Post edit")

    log_audit(current_user.id, current_user.role, 'Post Edited', f"Post ID: {post_id}")
    return success("Post updated")


@posts_bp.route('/<int:post_id>', methods=['DELETE'])
@role_required('posts', 'delete')
def delete_post(post_id, current_user):
    post = _get_post(post_id)
    db.session.delete(post)
    _commit("Post delete")

    log_audit(current_user.id, current_user.role, 'Post Deleted', f"Post ID: {post_id}")
    return success("Post deleted")
