"""
Points ledger service.

LedgerService owns every mutation of the ledger tables: admin budgets,
manager point pools, reward grants and redemption requests.

Each public method is one unit of work on the session it was given:
  - all checks run first and raise a RewardsError subclass;
  - every balance decrement is a conditional UPDATE
    (``... WHERE remaining_points >= :points``) whose row count is checked,
    so two concurrent spenders cannot both draw the same points;
  - the method commits once on success and rolls back on any failure.
SQLAlchemyError is rolled back, logged and surfaced as InternalError.
"""

from contextlib import contextmanager
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from zeta_rewards.errors import (
    RewardsError,
    ValidationError,
    NotFound,
    BudgetNotFound,
    InvalidReason,
    Forbidden,
    InsufficientPoints,
    InsufficientBudget,
    Conflict,
    AlreadyAssigned,
    InternalError,
)
from zeta_rewards.models import (
    AdminBudget,
    ManagerPoints,
    RewardPoints,
    RewardReason,
    Reward,
    Redemption,
    RedemptionStatus,
    Post,
    User,
    Role,
)
from zeta_rewards.utils.balance import load_balance


def _require_positive(points):
    if not isinstance(points, int) or isinstance(points, bool) or points <= 0:
        raise ValidationError("Points must be a positive integer.")


class LedgerService:
    """Ledger operations bound to one SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    @contextmanager
    def _unit_of_work(self, operation):
        try:
            yield
            self.session.commit()
        except RewardsError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.error(f"{operation} failed: {e}", exc_info=True)
            raise InternalError() from e

    # -------------------- CONDITIONAL UPDATES --------------------

    def _debit_admin_budget(self, admin_id, points):
        result = self.session.execute(
            update(AdminBudget)
            .where(AdminBudget.admin_id == admin_id, AdminBudget.remaining_points >= points)
            .values(remaining_points=AdminBudget.remaining_points - points)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _debit_manager_pool(self, manager_id, points):
        result = self.session.execute(
            update(ManagerPoints)
            .where(ManagerPoints.manager_id == manager_id, ManagerPoints.remaining_points >= points)
            .values(remaining_points=ManagerPoints.remaining_points - points)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _get_budget(self, admin_id):
        budget = self.session.get(AdminBudget, admin_id)
        if budget is None:
            raise BudgetNotFound()
        return budget

    def _get_manager_pool(self, manager_id):
        return self.session.execute(
            select(ManagerPoints).where(ManagerPoints.manager_id == manager_id)
        ).scalar_one_or_none()

    # -------------------- BUDGET ALLOCATION --------------------

    def fund_budget(self, admin_id, points, point_value=None):
        """
        Top up an admin's budget, creating it on first use.

        Both total_points and remaining_points grow by ``points``.
        """
        _require_positive(points)

        with self._unit_of_work("FundBudget"):
            budget = self.session.get(AdminBudget, admin_id)
            if budget is None:
                budget = AdminBudget(
                    admin_id=admin_id,
                    total_points=points,
                    remaining_points=points,
                    point_value=point_value if point_value is not None else 0,
                )
                self.session.add(budget)
                try:
                    self.session.flush()
                except IntegrityError:
                    raise Conflict("Budget was created by another request. Please retry.")
            else:
                self.session.execute(
                    update(AdminBudget)
                    .where(AdminBudget.admin_id == admin_id)
                    .values(
                        total_points=AdminBudget.total_points + points,
                        remaining_points=AdminBudget.remaining_points + points,
                    )
                    .execution_options(synchronize_session=False)
                )
                if point_value is not None:
                    budget.point_value = point_value

        current_app.logger.info(f"Admin {admin_id} budget funded with {points} points")
        self.session.refresh(budget)
        return budget

    def allocate(self, admin_id, manager_id, points):
        """Give a manager their first point pool out of the admin's budget."""
        _require_positive(points)

        with self._unit_of_work("Allocate"):
            manager = self.session.get(User, manager_id)
            if manager is None or manager.role != Role.MANAGER.value:
                raise NotFound("Manager not found.")

            budget = self._get_budget(admin_id)
            if points > budget.remaining_points:
                raise InsufficientBudget(
                    f"Not enough remaining budget. Remaining: {budget.remaining_points}, requested: {points}."
                )

            if self._get_manager_pool(manager_id) is not None:
                raise AlreadyAssigned()

            pool = ManagerPoints(manager_id=manager_id, points_assigned=points, remaining_points=points)
            self.session.add(pool)
            try:
                self.session.flush()
            except IntegrityError:
                raise AlreadyAssigned()

            if not self._debit_admin_budget(admin_id, points):
                raise InsufficientBudget()

        current_app.logger.info(f"Admin {admin_id} allocated {points} points to manager {manager_id}")
        return pool

    def increment_allocation(self, admin_id, manager_id, points):
        """Add points to an existing manager pool out of the admin's budget."""
        _require_positive(points)

        with self._unit_of_work("IncrementAllocation"):
            pool = self._get_manager_pool(manager_id)
            if pool is None:
                raise NotFound("No points assigned to this manager yet.")

            budget = self._get_budget(admin_id)
            if points > budget.remaining_points:
                raise InsufficientBudget(
                    f"Not enough remaining budget. Remaining: {budget.remaining_points}, requested: {points}."
                )

            if not self._debit_admin_budget(admin_id, points):
                raise InsufficientBudget()

            self.session.execute(
                update(ManagerPoints)
                .where(ManagerPoints.manager_id == manager_id)
                .values(
                    points_assigned=ManagerPoints.points_assigned + points,
                    remaining_points=ManagerPoints.remaining_points + points,
                )
                .execution_options(synchronize_session=False)
            )

        current_app.logger.info(f"Admin {admin_id} added {points} points to manager {manager_id}")
        self.session.refresh(pool)
        return pool

    # -------------------- REWARD ISSUANCE --------------------

    def issue_reward(self, giver_id, giver_role, receiver_id, points,
                     reason=None, reason_id=None, caption=None, image_url=None):
        """
        Grant ``points`` from the giver's remaining balance to ``receiver_id``.

        Writes the RewardPoints entry, debits the giver and creates the
        recognition Post in one transaction. Returns (entry, post).
        """
        _require_positive(points)
        if giver_role not in (Role.ADMIN.value, Role.MANAGER.value):
            raise Forbidden()

        with self._unit_of_work("IssueReward"):
            receiver = self.session.get(User, receiver_id)
            if receiver is None:
                raise NotFound("Receiver not found.")
            if giver_role == Role.MANAGER.value and receiver.manager_id != giver_id:
                raise Forbidden("You can only reward your own employees.")

            if reason_id is not None:
                reward_reason = self.session.get(RewardReason, reason_id)
                if reward_reason is None:
                    raise InvalidReason()
                reason = reward_reason.reason
                image_url = image_url or reward_reason.img
            elif not reason or not reason.strip():
                raise ValidationError("A reason or reason_id is required.")

            if giver_role == Role.MANAGER.value:
                pool = self._get_manager_pool(giver_id)
            else:
                pool = self.session.get(AdminBudget, giver_id)
            remaining = pool.remaining_points if pool is not None else 0
            if remaining < points:
                raise InsufficientPoints(f"Not enough points. Remaining: {remaining}, requested: {points}.")

            if giver_role == Role.MANAGER.value:
                debited = self._debit_manager_pool(giver_id, points)
            else:
                debited = self._debit_admin_budget(giver_id, points)
            if not debited:
                raise InsufficientPoints()

            entry = RewardPoints(
                giver_id=giver_id,
                receiver_id=receiver_id,
                points=points,
                reason=reason,
                reason_id=reason_id,
            )
            post = Post(
                giver_id=giver_id,
                receiver_id=receiver_id,
                points=points,
                reason=reason,
                image_url=image_url,
                caption=caption,
            )
            self.session.add_all([entry, post])

        current_app.logger.info(f"User {giver_id} ({giver_role}) issued {points} points to user {receiver_id}")
        return entry, post

    # -------------------- REDEMPTION WORKFLOW --------------------

    def request_redemption(self, employee_id, reward_id):
        """
        Open a pending redemption of a catalog reward.

        The employee row is locked for the duration of the check so that
        concurrent requests are serialized; points already tied up in pending
        requests count as reserved.
        """
        with self._unit_of_work("RequestRedemption"):
            reward = self.session.get(Reward, reward_id)
            if reward is None:
                raise NotFound("Reward not found.")

            employee = self.session.execute(
                select(User).where(User.id == employee_id).with_for_update()
            ).scalar_one_or_none()
            if employee is None:
                raise NotFound("Employee not found.")

            balance = load_balance(self.session, employee_id)
            if reward.points_required > balance.spendable:
                raise InsufficientPoints(
                    f"Not enough points. Available: {balance.spendable}, required: {reward.points_required}."
                )

            redemption = Redemption(
                user_id=employee_id,
                reward_title=reward.title,
                required_points=reward.points_required,
                category_id=reward.category_id,
                status=RedemptionStatus.PENDING,
            )
            self.session.add(redemption)

        current_app.logger.info(f"Employee {employee_id} requested redemption of reward {reward_id}")
        return redemption

    def resolve_redemption(self, admin_id, redemption_id, status, decline_reason=None):
        """
        Move a pending redemption to approved or declined, exactly once.

        Approval does not re-check the balance; the request was checked
        against reserved points when it was made.
        """
        try:
            new_status = RedemptionStatus(status)
        except ValueError:
            raise ValidationError("Status must be approved or declined.")
        if new_status == RedemptionStatus.PENDING:
            raise ValidationError("Status must be approved or declined.")
        if new_status == RedemptionStatus.DECLINED and not (decline_reason or '').strip():
            raise ValidationError("A decline reason is required.")

        with self._unit_of_work("ResolveRedemption"):
            redemption = self.session.get(Redemption, redemption_id)
            if redemption is None:
                raise NotFound("Redemption not found.")

            result = self.session.execute(
                update(Redemption)
                .where(Redemption.id == redemption_id, Redemption.status == RedemptionStatus.PENDING)
                .values(
                    status=new_status,
                    decline_reason=decline_reason if new_status == RedemptionStatus.DECLINED else None,
                    resolved_at=datetime.now(timezone.utc),
                    resolved_by=admin_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise Conflict("Redemption has already been resolved.")

        current_app.logger.info(f"Admin {admin_id} {new_status.value} redemption {redemption_id}")
        self.session.refresh(redemption)
        return redemption
