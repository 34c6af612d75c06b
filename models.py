# models.py: Flask-SQLAlchemy models for users, transactions and commissions
from decimal import Decimal
from enum import Enum
from flask_login import UserMixin
from sqlalchemy import Index
from extensions import db

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class CommissionType(Enum):
    DIRECT = "direct"
    LEVEL = "level"


class CommissionStatus(Enum):
    PENDING = "pending"
    PAID = "paid"


class TransactionType(Enum):
    SALE = "sale"
    INVESTMENT = "investment"
    OTHER = "other"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


ADMIN_ROLE = "admin"
MEMBER_ROLE = "member"


def format_id(value):
    """Render primary/foreign keys as strings for JSON responses."""
    return str(value) if value is not None else None


def as_number(value):
    if value is None:
        return 0
    return float(value) if isinstance(value, Decimal) else value


def as_iso(value):
    return value.isoformat() if value else None

# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime(timezone=True), default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=db.func.now(),
                           onupdate=db.func.now())

# ===========================================================
# USER / SPONSOR DIRECTORY
# ===========================================================

class User(UserMixin, db.Model, BaseMixin):
    """Member of the network. sponsor_id points at the user who referred them."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    auth0_id = db.Column(db.String(128), unique=True, nullable=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    full_name = db.Column(db.String(150))
    email = db.Column(db.String(120), unique=True, nullable=True)
    roles = db.Column(db.JSON, default=lambda: [MEMBER_ROLE])

    sponsor_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    direct_commission = db.Column(db.Numeric(5, 2), nullable=True, default=10)
    # JSON list of percentages for levels 1..N; legacy rows hold a JSON-encoded string
    level_commissions = db.Column(db.JSON, nullable=True, default=lambda: [5, 3, 1])

    sponsor = db.relationship('User', remote_side=[id], backref='downline')
    commissions = db.relationship('Commission', back_populates='user', lazy='dynamic')
    transactions = db.relationship('Transaction', back_populates='user', lazy='dynamic')

    __table_args__ = (
        Index('idx_user_auth0_id', 'auth0_id'),
    )

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])

    @property
    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE)

    def to_dict(self):
        return {
            "id": format_id(self.id),
            "username": self.username,
            "fullName": self.full_name,
            "email": self.email,
            "roles": self.roles or [],
            "sponsorId": format_id(self.sponsor_id),
            "directCommission": as_number(self.direct_commission),
            "levelCommissions": self.level_commissions,
            "createdAt": as_iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.id} {self.username}>"

# ===========================================================
# TRANSACTION LEDGER
# ===========================================================

class Transaction(db.Model, BaseMixin):
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = db.Column(db.Numeric(precision=18, scale=4), nullable=False)
    type = db.Column(db.String(50), nullable=False, default=TransactionType.SALE.value)
    status = db.Column(db.String(20), nullable=False, default=TransactionStatus.COMPLETED.value)
    description = db.Column(db.String(255), default='Transaction')
    meta = db.Column('metadata', db.JSON, default=dict)

    user = db.relationship('User', back_populates='transactions')
    commissions = db.relationship('Commission', back_populates='transaction', lazy='dynamic')

    def to_dict(self, fields=None):
        result = {
            "id": format_id(self.id),
            "userId": format_id(self.user_id),
            "amount": as_number(self.amount),
            "type": self.type,
            "status": self.status,
            "description": self.description,
            "metadata": self.meta or {},
            "createdAt": as_iso(self.created_at),
        }
        if fields:
            return {key: result[key] for key in fields}
        return result

# ===========================================================
# COMMISSIONS
# ===========================================================

class Commission(db.Model, BaseMixin):
    __tablename__ = 'commissions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = db.Column(db.Numeric(precision=18, scale=4), nullable=False)
    percentage = db.Column(db.Numeric(7, 4), nullable=False)
    type = db.Column(db.String(20), nullable=False)  # direct, level
    level = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default=CommissionStatus.PENDING.value, index=True)
    notes = db.Column(db.String(255))

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)
    payment_notes = db.Column(db.String(255), nullable=True)

    user = db.relationship('User', back_populates='commissions')
    transaction = db.relationship('Transaction', back_populates='commissions')

    __table_args__ = (
        Index('idx_commission_user_status', 'user_id', 'status'),
    )

    def to_dict(self, include_user=False, transaction_fields=None):
        result = {
            "id": format_id(self.id),
            "userId": format_id(self.user_id),
            "transactionId": format_id(self.transaction_id),
            "amount": as_number(self.amount),
            "percentage": as_number(self.percentage),
            "type": self.type,
            "level": self.level,
            "status": self.status,
            "notes": self.notes,
            "paidAt": as_iso(self.paid_at),
            "paymentReference": self.payment_reference,
            "paymentNotes": self.payment_notes,
            "createdAt": as_iso(self.created_at),
            "updatedAt": as_iso(self.updated_at),
        }
        if include_user and self.user is not None:
            result["user"] = {
                "username": self.user.username,
                "fullName": self.user.full_name,
            }
        if transaction_fields and self.transaction is not None:
            result["transaction"] = self.transaction.to_dict(fields=transaction_fields)
        return result

    def __repr__(self):
        return f"<Commission {self.id} {self.type} L{self.level} {self.amount}>"
