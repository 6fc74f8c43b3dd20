"""
In-app notifications and push dispatch.

In-app notifications are Notification rows. Push messages go through the
notifier from zeta_rewards.utils.push_client and are sent on the background
scheduler when it is running, inline otherwise.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from zeta_rewards.extensions import db, scheduler
from zeta_rewards.models import Notification, User
from zeta_rewards.utils.push_client import get_notifier


logger = logging.getLogger('notifications')


def create_notification(recipient_id, message, type='info', sender_id=None):
    """Insert and commit a Notification row."""
    notification = Notification(
        sender_id=sender_id,
        recipient_id=recipient_id,
        message=message,
        type=type,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


def _registered_push_tokens():
    rows = (
        db.session.query(User.push_token)
        .filter(User.push_token.isnot(None), User.push_token != '')
        .all()
    )
    return [token for (token,) in rows]


def send_push_batch(notifier, tokens, notification, data=None):
    """Send one notification to each token. Individual failures are logged."""
    sent = 0
    for token in tokens:
        try:
            if notifier.send(token, notification, data):
                sent += 1
        except Exception as e:
            logger.error(f"Push notification error for token {token[:12]}...: {e}")
    logger.info(f"Push dispatch finished: {sent}/{len(tokens)} sent")
    return sent


def dispatch_push(notification, data=None, tokens=None):
    """
    Fire-and-forget push of ``notification`` ({title, body}).

    Sends to ``tokens`` or, when omitted, to every registered push token.
    Returns the number of tokens targeted.
    """
    if tokens is None:
        tokens = _registered_push_tokens()
    if not tokens:
        return 0

    notifier = get_notifier()
    if scheduler.running:
        scheduler.add_job(
            send_push_batch,
            args=[notifier, list(tokens), notification, data],
            name='push-dispatch',
        )
    else:
        send_push_batch(notifier, tokens, notification, data)
    return len(tokens)


def notify_reward_issued(entry, giver, receiver):
    """
    Tell the receiver about a grant and broadcast it as a push message.

    Runs after the ledger commit; nothing here may raise into the caller.
    """
    message = f"{giver.name} rewarded you {entry.points} points: {entry.reason}"
    try:
        create_notification(receiver.id, message, type='reward', sender_id=giver.id)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Could not store reward notification for user {receiver.id}: {e}", exc_info=True)

    try:
        dispatch_push(
            {"title": "New Recognition", "body": f"{giver.name} rewarded {receiver.name} {entry.points} points"},
            data={"type": "reward", "receiver_id": str(receiver.id)},
        )
    except Exception as e:
        logger.error(f"Push dispatch failed for reward {entry.id}: {e}", exc_info=True)


def notify_manager_request(employee, message):
    """Forward an employee's message to their manager in-app and by push."""
    notification = create_notification(
        employee.manager_id, message, type='employee_request', sender_id=employee.id
    )
    manager = db.session.get(User, employee.manager_id)
    if manager is not None and manager.push_token:
        try:
            dispatch_push(
                {"title": f"Request from {employee.name}", "body": message},
                tokens=[manager.push_token],
            )
        except Exception as e:
            logger.error(f"Push dispatch failed for manager {manager.id}: {e}", exc_info=True)
    return notification
