# commissions/services.py
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional
import logging

from sqlalchemy.orm import Session, joinedload
from werkzeug.exceptions import BadRequest, NotFound, Forbidden

from models import User, Transaction, Commission, CommissionStatus, TransactionType, TransactionStatus
from commissions.calculator import calculate_commissions
from commissions.filters import CommissionQueryParams, paginate, parse_id
from commissions.stats import compute_stats, overall_stats

logger = logging.getLogger(__name__)

ADMIN_LIST_TRANSACTION_FIELDS = ("amount", "type", "status")
USER_LIST_TRANSACTION_FIELDS = ("amount", "type", "description", "createdAt")
DEFAULT_PAYMENT_NOTES = "Paid by admin"


class CommissionService:
    """
    Persistence and query operations for commissions.
    The session is owned by the caller and passed in explicitly.
    """

    def __init__(self, session: Session):
        self.session = session

    # ==================================================================
    # PROCESS TRANSACTION
    # ==================================================================
    def process_transaction(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Record a transaction for a user and persist the commissions it earns.

        The transaction row and its commissions are committed together; any
        failure rolls both back.
        """
        payload = payload or {}
        raw_amount = payload.get("amount")
        raw_user_id = payload.get("userId")

        if not raw_amount or not raw_user_id:
            raise BadRequest("Amount and user ID are required")

        if isinstance(raw_amount, bool):
            raise BadRequest(f"Invalid amount: {raw_amount}")
        try:
            amount = Decimal(str(raw_amount))
        except InvalidOperation:
            raise BadRequest(f"Invalid amount: {raw_amount}")
        if not amount.is_finite():
            raise BadRequest(f"Invalid amount: {raw_amount}")

        user = self.session.get(User, parse_id(raw_user_id, "userId"))
        if user is None:
            raise NotFound("User not found")

        try:
            transaction = Transaction(
                user_id=user.id,
                amount=amount,
                type=payload.get("type") or TransactionType.SALE.value,
                status=payload.get("status") or TransactionStatus.COMPLETED.value,
                description=payload.get("description") or "Transaction",
                meta=payload.get("metadata") or {},
            )
            self.session.add(transaction)
            self.session.flush()

            result = calculate_commissions(transaction, user, self.session)
            if result.swallowed:
                logger.warning(
                    f"Commission calculation failed for transaction {transaction.id}; "
                    f"no commissions recorded ({result.error})"
                )

            if result.records:
                self.session.add_all([Commission(**record) for record in result.records])

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Processed transaction {transaction.id} for user {user.id}: {len(result.records)} commissions")

        created = (
            self.session.query(Commission)
            .options(joinedload(Commission.user))
            .filter(Commission.transaction_id == transaction.id)
            .order_by(Commission.level.asc(), Commission.id.asc())
            .all()
        )

        return {
            "transaction": transaction.to_dict(),
            "commissions": [c.to_dict(include_user=True) for c in created],
            "message": "Transaction processed and commissions calculated successfully",
        }

    # ==================================================================
    # LISTINGS
    # ==================================================================
    def list_commissions(self, params: CommissionQueryParams) -> Dict[str, Any]:
        query = self.session.query(Commission).options(
            joinedload(Commission.user),
            joinedload(Commission.transaction),
        )
        query = params.order(params.apply(query))
        items, pagination = paginate(query, params.page, params.limit)

        return {
            "commissions": [
                c.to_dict(include_user=True, transaction_fields=ADMIN_LIST_TRANSACTION_FIELDS)
                for c in items
            ],
            "pagination": pagination,
        }

    def list_user_commissions(
            self,
            user_id: Any,
            params: CommissionQueryParams,
            caller_sub: Optional[str],
            is_admin: bool = False
    ) -> Dict[str, Any]:
        """
        Commissions earned by one user, visible to that user or an admin.
        """
        try:
            target_id = int(str(user_id))
        except (TypeError, ValueError):
            raise NotFound("User not found")

        user = self.session.get(User, target_id)
        if user is None:
            raise NotFound("User not found")

        is_own = caller_sub is not None and caller_sub == user.auth0_id
        if not is_admin and not is_own:
            raise Forbidden("You do not have permission to view these commissions")

        params.user_id = user.id
        query = self.session.query(Commission).options(joinedload(Commission.transaction))
        query = params.order(params.apply(query))
        items, pagination = paginate(query, params.page, params.limit)

        return {
            "commissions": [
                c.to_dict(transaction_fields=USER_LIST_TRANSACTION_FIELDS) for c in items
            ],
            "pagination": pagination,
            "stats": compute_stats(self.session, user.id).stats,
        }

    # ==================================================================
    # PAYOUTS
    # ==================================================================
    def pay_commissions(
            self,
            commission_ids: Any,
            payment_reference: Optional[str] = None,
            payment_notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Mark commissions as paid.

        Matching rows are updated whatever their current status.
        """
        if not commission_ids or not isinstance(commission_ids, list):
            raise BadRequest("Commission IDs array is required")

        ids: List[int] = []
        for raw_id in commission_ids:
            try:
                ids.append(int(str(raw_id)))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid commission id {raw_id!r}")

        updated_count = 0
        if ids:
            try:
                updated_count = (
                    self.session.query(Commission)
                    .filter(Commission.id.in_(ids))
                    .update(
                        {
                            Commission.status: CommissionStatus.PAID.value,
                            Commission.paid_at: datetime.now(timezone.utc),
                            Commission.payment_reference: payment_reference or None,
                            Commission.payment_notes: payment_notes or DEFAULT_PAYMENT_NOTES,
                        },
                        synchronize_session=False,
                    )
                )
                if updated_count:
                    self.session.commit()
                else:
                    self.session.rollback()
            except Exception:
                self.session.rollback()
                raise

        if updated_count == 0:
            raise NotFound("No commissions were updated")

        logger.info(f"Marked {updated_count} commissions as paid (reference={payment_reference})")

        updated = (
            self.session.query(Commission)
            .options(joinedload(Commission.user))
            .filter(Commission.id.in_(ids))
            .order_by(Commission.id.asc())
            .all()
        )

        return {
            "message": f"{updated_count} commissions marked as paid",
            "commissions": [c.to_dict(include_user=True) for c in updated],
        }

    # ==================================================================
    # STATISTICS
    # ==================================================================
    def overall_stats(self) -> Dict[str, Any]:
        return {"stats": overall_stats(self.session)}
