"""
Employee points balance.

The available balance is never stored; it is derived from ledger rows on every
read. compute_available_balance() is a pure function so it can be exercised
without a database; load_balance() feeds it from the session.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import func, select


@dataclass(frozen=True)
class PointsBalance:
    """Breakdown of an employee's points."""
    earned: int
    redeemed: int                # approved redemptions
    pending: int = 0             # redemptions awaiting a decision

    @property
    def available(self) -> int:
        return self.earned - self.redeemed

    @property
    def spendable(self) -> int:
        """Available points not already reserved by pending requests."""
        return self.available - self.pending

    def to_dict(self):
        return {
            "earned": self.earned,
            "redeemed": self.redeemed,
            "pending": self.pending,
            "available": self.available,
        }


def compute_available_balance(grants: Iterable[int],
                              redemptions: Iterable[tuple],
                              ) -> PointsBalance:
    """
    Derive a balance from raw ledger values.

    Args:
        grants: points of every RewardPoints row received by the employee
        redemptions: (required_points, status) pairs for the employee's
            redemption requests; status is the plain string value

    Returns:
        PointsBalance with earned, approved-redeemed and pending totals
    """
    earned = sum(int(p) for p in grants)
    redeemed = 0
    pending = 0
    for required_points, status in redemptions:
        status = getattr(status, 'value', status)
        if status == 'approved':
            redeemed += int(required_points)
        elif status == 'pending':
            pending += int(required_points)
    return PointsBalance(earned=earned, redeemed=redeemed, pending=pending)


def load_balance(session, user_id: int) -> PointsBalance:
    """Sum an employee's ledger rows in the database and derive the balance."""
    from zeta_rewards.models import RewardPoints, Redemption

    earned: Optional[int] = session.execute(
        select(func.coalesce(func.sum(RewardPoints.points), 0))
        .where(RewardPoints.receiver_id == user_id)
    ).scalar()

    rows = session.execute(
        select(Redemption.status, func.coalesce(func.sum(Redemption.required_points), 0))
        .where(Redemption.user_id == user_id)
        .group_by(Redemption.status)
    ).all()

    return compute_available_balance(
        [earned or 0],
        [(total, status) for status, total in rows],
    )
