# commissions/config.py
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)


class CommissionConfigHelper:
    """
    Resolves per-user commission rates.
    Direct commission defaults to 10%, upline levels default to 5%, 3%, 1%.
    """

    DEFAULT_DIRECT_RATE = Decimal('10')
    DEFAULT_LEVEL_RATES = [Decimal('5'), Decimal('3'), Decimal('1')]

    @staticmethod
    def default_direct_rate() -> Decimal:
        if has_app_context():
            configured = current_app.config.get("DEFAULT_DIRECT_COMMISSION")
            if configured:
                return Decimal(str(configured))
        return CommissionConfigHelper.DEFAULT_DIRECT_RATE

    @staticmethod
    def default_level_rates() -> List[Decimal]:
        if has_app_context():
            configured = current_app.config.get("DEFAULT_LEVEL_COMMISSIONS")
            if isinstance(configured, list):
                return [Decimal(str(rate)) for rate in configured]
        return list(CommissionConfigHelper.DEFAULT_LEVEL_RATES)

    @staticmethod
    def get_direct_rate(user) -> Decimal:
        """Unset or zero direct rate falls back to the default."""
        rate = getattr(user, "direct_commission", None)
        if not rate:
            return CommissionConfigHelper.default_direct_rate()
        return Decimal(str(rate))

    @staticmethod
    def get_level_rates(user) -> List[Decimal]:
        """
        Level rates come from user.level_commissions, either a list or a
        JSON-encoded string. Unparsable strings and values that are neither a
        string nor a list fall back to the defaults.

        A string that decodes to a scalar or object yields no level rates. One
        that decodes to null, or a list entry that is not numeric, raises
        InvalidOperation; the calculator treats that as a failed calculation.
        """
        rates = getattr(user, "level_commissions", None)

        if isinstance(rates, str):
            try:
                rates = json.loads(rates)
            except ValueError:
                logger.warning(f"Unparsable level commissions for user {getattr(user, 'id', None)}, using defaults")
                return CommissionConfigHelper.default_level_rates()

            if rates is None:
                raise InvalidOperation(f"Level commissions for user {getattr(user, 'id', None)} decode to null")
            if not isinstance(rates, list):
                return []

        if not isinstance(rates, list):
            return CommissionConfigHelper.default_level_rates()

        return [CommissionConfigHelper._to_rate(rate) for rate in rates]

    @staticmethod
    def _to_rate(value: Any) -> Decimal:
        if isinstance(value, bool) or value is None:
            raise InvalidOperation(f"Invalid commission rate: {value!r}")
        return Decimal(str(value))

    @staticmethod
    def get_distribution_summary() -> Dict[str, Any]:
        """Summary of the default distribution across direct + upline levels"""
        direct = CommissionConfigHelper.default_direct_rate()
        levels = CommissionConfigHelper.default_level_rates()

        distribution = {
            level: {
                'percentage': float(rate),
                'percentage_display': f"{float(rate)}%"
            }
            for level, rate in enumerate(levels, start=1)
        }

        return {
            'direct': float(direct),
            'distribution': distribution,
            'total_percentage': float(direct + sum(levels, Decimal('0'))),
            'max_level': len(levels),
        }
