# commissions/calculator.py
from decimal import Decimal
from typing import Dict, Any, Optional
import logging

from sqlalchemy.orm import Session

from models import User, CommissionType, CommissionStatus
from commissions.config import CommissionConfigHelper
from commissions.chains import walk_upline
from commissions.results import CalculationResult

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _commission_record(user_id, transaction_id, amount, rate, commission_type, level, notes) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "transaction_id": transaction_id,
        "amount": amount,
        "percentage": rate,
        "type": commission_type,
        "level": level,
        "status": CommissionStatus.PENDING.value,
        "notes": notes,
    }


def calculate_commissions(transaction, user: Optional[User], session: Session) -> CalculationResult:
    """
    Calculate the commissions owed for one transaction.

    Produces a direct commission for the transacting user followed by one level
    commission per sponsor up the chain, until the chain ends, a sponsor is
    missing, or the user's level rates run out. Records come back in that order.

    Invalid input (no user, missing or non-positive amount) yields no records.
    Errors are not raised: they are logged and returned on the result.
    """
    try:
        if user is None or not transaction.amount:
            return CalculationResult()

        amount = Decimal(str(transaction.amount))
        if amount <= 0:
            return CalculationResult()

        records = []

        # 1. Direct commission for the seller
        direct_rate = CommissionConfigHelper.get_direct_rate(user)
        records.append(_commission_record(
            user.id,
            transaction.id,
            amount * direct_rate / HUNDRED,
            direct_rate,
            CommissionType.DIRECT.value,
            0,
            f"Direct commission from transaction {transaction.id}",
        ))

        # 2. Level commissions up the sponsor chain
        level_rates = CommissionConfigHelper.get_level_rates(user)

        for sponsor, level in walk_upline(session, user, max_depth=len(level_rates)):
            level_rate = level_rates[level - 1]
            records.append(_commission_record(
                sponsor.id,
                transaction.id,
                amount * level_rate / HUNDRED,
                level_rate,
                CommissionType.LEVEL.value,
                level,
                f"Level {level} commission from user {user.username}",
            ))

        logger.info(
            f"Calculated {len(records)} commissions for transaction {transaction.id}: "
            f"total {sum((r['amount'] for r in records), Decimal('0'))}"
        )
        return CalculationResult(records=records)

    except Exception as e:
        logger.error(f"Error calculating commissions for transaction {getattr(transaction, 'id', None)}: {e}")
        return CalculationResult(records=[], error=e)
