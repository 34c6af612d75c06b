# commissions/filters.py
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple, List

from werkzeug.exceptions import BadRequest

from models import Commission

# Caller-facing sort keys -> columns
SORT_FIELDS = {
    "createdAt": Commission.created_at,
    "updatedAt": Commission.updated_at,
    "paidAt": Commission.paid_at,
    "amount": Commission.amount,
    "percentage": Commission.percentage,
    "level": Commission.level,
    "status": Commission.status,
    "type": Commission.type,
    "userId": Commission.user_id,
    "transactionId": Commission.transaction_id,
    "id": Commission.id,
}

DEFAULT_SORT_FIELD = "createdAt"
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


def parse_id(value: Any, field: str = "id") -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise BadRequest(f"Invalid {field}: {value}")


def parse_date(value: Optional[str], field: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise BadRequest(f"Invalid {field}: {value}")

    # Stored timestamps are compared as naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass
class CommissionQueryParams:
    status: Optional[str] = None
    type: Optional[str] = None
    user_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_field: str = DEFAULT_SORT_FIELD
    sort_order: str = "desc"
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT

    @classmethod
    def from_args(cls, args: Mapping[str, Any], default_limit: int = DEFAULT_PAGE_LIMIT,
                  max_limit: int = MAX_PAGE_LIMIT) -> "CommissionQueryParams":
        sort_field = args.get("sortField") or DEFAULT_SORT_FIELD
        if sort_field not in SORT_FIELDS:
            raise BadRequest(f"Invalid sortField: {sort_field}")

        user_id = args.get("userId")

        return cls(
            status=args.get("status") or None,
            type=args.get("type") or None,
            user_id=parse_id(user_id, "userId") if user_id else None,
            start_date=parse_date(args.get("startDate"), "startDate"),
            end_date=parse_date(args.get("endDate"), "endDate"),
            sort_field=sort_field,
            sort_order="asc" if args.get("sortOrder") == "asc" else "desc",
            page=_positive_int(args.get("page"), 1),
            limit=min(_positive_int(args.get("limit"), default_limit), max_limit),
        )

    def apply(self, query):
        """Apply filters and ordering to a Commission query."""
        if self.status:
            query = query.filter(Commission.status == self.status)
        if self.type:
            query = query.filter(Commission.type == self.type)
        if self.user_id is not None:
            query = query.filter(Commission.user_id == self.user_id)
        if self.start_date:
            query = query.filter(Commission.created_at >= self.start_date)
        if self.end_date:
            query = query.filter(Commission.created_at <= self.end_date)
        return query

    def order(self, query):
        column = SORT_FIELDS[self.sort_field]
        ordering = column.asc() if self.sort_order == "asc" else column.desc()
        # id as tie-breaker keeps pages stable
        return query.order_by(ordering, Commission.id.asc())


def paginate(query, page: int, limit: int) -> Tuple[List[Any], Dict[str, int]]:
    """Run a count + page query and build the pagination envelope."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()

    return items, {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }
