"""
Social feed aggregation.

Builds one page of recognition posts, newest first, with giver/receiver
names, like and comment counts, whether the viewer liked each post, and the
post's comments (oldest first) with their like counts.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from zeta_rewards.models import Post, Like, Comment, CommentLike, User
from zeta_rewards.utils.helpers import format_utc_iso


def _comments_by_post(session, post_ids):
    if not post_ids:
        return {}

    like_count = (
        select(func.count(CommentLike.id))
        .where(CommentLike.comment_id == Comment.id)
        .correlate(Comment)
        .scalar_subquery()
    )
    rows = session.execute(
        select(Comment, User.name, like_count)
        .join(User, User.id == Comment.user_id)
        .where(Comment.post_id.in_(post_ids))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    ).all()

    grouped = {}
    for comment, commenter_name, likes in rows:
        grouped.setdefault(comment.post_id, []).append({
            "id": comment.id,
            "post_id": comment.post_id,
            "user_id": comment.user_id,
            "commenter_name": commenter_name,
            "comment_text": comment.comment_text,
            "like_count": likes,
            "created_at": format_utc_iso(comment.created_at),
        })
    return grouped


def build_feed_page(session, viewer_id, limit, offset):
    """
    Return a feed page dict: totalCount, limit, offset, nextOffset, data.

    nextOffset is None once the page reaches the end of the feed.
    """
    total_count = session.execute(select(func.count(Post.id))).scalar() or 0

    giver = aliased(User)
    receiver = aliased(User)
    like_count = (
        select(func.count(Like.id)).where(Like.post_id == Post.id).correlate(Post).scalar_subquery()
    )
    comment_count = (
        select(func.count(Comment.id)).where(Comment.post_id == Post.id).correlate(Post).scalar_subquery()
    )
    user_liked = (
        select(Like.id).where(Like.post_id == Post.id, Like.user_id == viewer_id).correlate(Post).exists()
    )

    rows = session.execute(
        select(Post, giver.name, receiver.name, like_count, comment_count, user_liked)
        .join(giver, giver.id == Post.giver_id)
        .join(receiver, receiver.id == Post.receiver_id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()

    comments = _comments_by_post(session, [row[0].id for row in rows])

    data = []
    for post, giver_name, receiver_name, likes, n_comments, liked in rows:
        data.append({
            "id": post.id,
            "giver_id": post.giver_id,
            "receiver_id": post.receiver_id,
            "giver_name": giver_name,
            "receiver_name": receiver_name,
            "points": post.points,
            "reason": post.reason,
            "caption": post.caption,
            "image_url": post.image_url,
            "created_at": format_utc_iso(post.created_at),
            "like_count": likes,
            "comment_count": n_comments,
            "user_liked": bool(liked),
            "comments": comments.get(post.id, []),
        })

    return {
        "totalCount": total_count,
        "limit": limit,
        "offset": offset,
        "nextOffset": offset + limit if offset + limit < total_count else None,
        "data": data,
    }
