"""
Scheduled background tasks for Zeta Rewards.

The background scheduler also runs fire-and-forget push dispatches queued by
zeta_rewards.utils.notifications; this module starts it and registers the
periodic jobs.
"""

import logging

from sqlalchemy import func


def remind_pending_redemptions_job():
    """
    Scheduled job that leaves every admin an in-app reminder when redemption
    requests are waiting for a decision. Runs daily.
    """
    # Import here to avoid circular imports
    from zeta_rewards.extensions import db
    from zeta_rewards.models import Redemption, RedemptionStatus, User, Role
    from zeta_rewards.utils.notifications import create_notification

    logger = logging.getLogger('scheduled_tasks')
    logger.info("Starting pending redemption reminder job")

    try:
        pending = (
            db.session.query(func.count(Redemption.id))
            .filter(Redemption.status == RedemptionStatus.PENDING)
            .scalar()
        ) or 0
        if not pending:
            logger.info("No pending redemptions; nothing to remind")
            return 0

        admins = User.query.filter_by(role=Role.ADMIN.value, approved=True).all()
        for admin in admins:
            create_notification(
                admin.id,
                f"{pending} redemption request(s) awaiting your decision.",
                type='info',
            )
        logger.info(f"Reminded {len(admins)} admin(s) about {pending} pending redemption(s)")
        return len(admins)

    except Exception as e:
        logger.error(f"Pending redemption reminder job failed: {e}", exc_info=True)
        db.session.rollback()
        return 0


def init_scheduled_tasks(app):
    """
    Initialize and start scheduled tasks.

    Args:
        app: Flask application instance
    """
    from zeta_rewards.extensions import scheduler

    logger = logging.getLogger('scheduled_tasks')

    # Wrapper function that runs the job with Flask app context
    def run_with_context():
        with app.app_context():
            remind_pending_redemptions_job()

    if not scheduler.running:
        scheduler.add_job(
            func=run_with_context,
            trigger='interval',
            hours=24,
            id='remind_pending_redemptions',
            name='Remind admins of pending redemptions',
            replace_existing=True,
            max_instances=1  # Prevent overlapping executions
        )

        scheduler.start()
        logger.info("Scheduled tasks initialized. Pending redemption reminder will run daily.")
    else:
        logger.info("Scheduler already running")
