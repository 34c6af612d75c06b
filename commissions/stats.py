# commissions/stats.py
from typing import Any, Dict, List
import logging

from sqlalchemy import func, desc
from sqlalchemy.orm import Session

from models import Commission, CommissionStatus, User, as_number, format_id
from commissions.results import StatsResult, empty_stats

logger = logging.getLogger(__name__)

TOP_EARNERS_LIMIT = 10


def _sum_amount(session: Session, *criteria):
    return session.query(func.sum(Commission.amount)).filter(*criteria).scalar()


def _by_type(session: Session, *criteria) -> Dict[str, Any]:
    rows = (
        session.query(Commission.type, func.sum(Commission.amount))
        .filter(*criteria)
        .group_by(Commission.type)
        .all()
    )
    return {commission_type: as_number(total) for commission_type, total in rows}


def compute_stats(session: Session, user_id: int) -> StatsResult:
    """
    Commission statistics for one user.

    Earnings are amount sums by status; byType maps commission type to summed
    amount. Failures are logged and degrade to an all-zero result.
    """
    try:
        owned = Commission.user_id == user_id

        stats = {
            "totalEarnings": as_number(_sum_amount(session, owned)),
            "pendingEarnings": as_number(_sum_amount(session, owned, Commission.status == CommissionStatus.PENDING.value)),
            "paidEarnings": as_number(_sum_amount(session, owned, Commission.status == CommissionStatus.PAID.value)),
            "totalCommissions": session.query(func.count(Commission.id)).filter(owned).scalar() or 0,
            "byType": _by_type(session, owned),
        }
        return StatsResult(stats=stats)

    except Exception as e:
        logger.error(f"Error calculating commission stats for user {user_id}: {e}")
        return StatsResult(stats=empty_stats(), error=e)


def top_earners(session: Session, limit: int = TOP_EARNERS_LIMIT) -> List[Dict[str, Any]]:
    """Users with the highest summed commission amount, in one grouped query."""
    total = func.sum(Commission.amount).label("total")
    rows = (
        session.query(User.id, User.username, User.full_name, total)
        .join(Commission, Commission.user_id == User.id)
        .group_by(User.id, User.username, User.full_name)
        .order_by(desc("total"), User.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": format_id(row.id),
            "username": row.username,
            "fullName": row.full_name,
            "total": as_number(row.total),
        }
        for row in rows
    ]


def overall_stats(session: Session) -> Dict[str, Any]:
    """Platform-wide totals: paid vs pending, per type, and the top earners."""
    total_paid = as_number(_sum_amount(session, Commission.status == CommissionStatus.PAID.value))
    total_pending = as_number(_sum_amount(session, Commission.status == CommissionStatus.PENDING.value))

    return {
        "totalPaid": total_paid,
        "totalPending": total_pending,
        "totalCommissions": total_paid + total_pending,
        "byType": _by_type(session),
        "topEarners": top_earners(session),
    }
