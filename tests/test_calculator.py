# tests/test_calculator.py
"""
Tests for the commission calculator: direct + upline level commissions.
"""
from decimal import Decimal
from types import SimpleNamespace

from sqlalchemy.exc import OperationalError

from models import User
from commissions.calculator import calculate_commissions
from commissions.chains import check_sponsor_chain_integrity, find_cyclic_users
from commissions.config import CommissionConfigHelper


def _transaction(amount, id=1):
    return SimpleNamespace(id=id, amount=amount)


class BrokenSession:
    """Session stand-in whose lookups fail like a dropped connection."""

    def get(self, *args, **kwargs):
        raise OperationalError("SELECT users", {}, Exception("connection lost"))


# =============================================================================
# INVALID INPUT
# =============================================================================

class TestInvalidInput:

    def test_missing_user_yields_nothing(self, session):
        result = calculate_commissions(_transaction(100), None, session)

        assert result.records == []
        assert result.error is None

    def test_zero_amount_yields_nothing(self, session, chain):
        seller = session.get(User, chain["seller"])

        assert calculate_commissions(_transaction(0), seller, session).records == []
        assert calculate_commissions(_transaction(None), seller, session).records == []

    def test_negative_amount_yields_nothing(self, session, chain):
        seller = session.get(User, chain["seller"])
        result = calculate_commissions(_transaction(Decimal("-50")), seller, session)

        assert result.records == []
        assert not result.swallowed


# =============================================================================
# DIRECT COMMISSION
# =============================================================================

class TestDirectCommission:

    def test_root_user_gets_only_direct(self, session, make_user):
        user = session.get(User, make_user("solo", direct_commission=12))
        result = calculate_commissions(_transaction(Decimal("250")), user, session)

        assert len(result.records) == 1
        record = result.records[0]
        assert record["user_id"] == user.id
        assert record["amount"] == Decimal("250") * Decimal("12") / 100
        assert record["type"] == "direct"
        assert record["level"] == 0
        assert record["status"] == "pending"
        assert record["notes"] == "Direct commission from transaction 1"

    def test_unset_direct_rate_defaults_to_ten(self, session, make_user):
        user = session.get(User, make_user("norate", direct_commission=None))
        record = calculate_commissions(_transaction(300), user, session).records[0]

        assert record["percentage"] == Decimal("10")
        assert record["amount"] == Decimal("30")

    def test_zero_direct_rate_falls_back_to_default(self, session, make_user):
        user = session.get(User, make_user("zerorate", direct_commission=0))
        record = calculate_commissions(_transaction(100), user, session).records[0]

        assert record["amount"] == Decimal("10")


# =============================================================================
# LEVEL COMMISSIONS
# =============================================================================

class TestLevelCommissions:

    def test_worked_example(self, session, make_user):
        """1000 sale, direct 10%, chain seller <- B <- C, rates [5, 3, 1]."""
        c = make_user("c")
        b = make_user("b", sponsor_id=c)
        seller = session.get(User, make_user("a", sponsor_id=b, direct_commission=10, level_commissions=[5, 3, 1]))

        records = calculate_commissions(_transaction(Decimal("1000")), seller, session).records

        assert [(r["user_id"], r["amount"], r["type"], r["level"]) for r in records] == [
            (seller.id, Decimal("100"), "direct", 0),
            (b, Decimal("50"), "level", 1),
            (c, Decimal("30"), "level", 2),
        ]
        assert records[1]["notes"] == "Level 1 commission from user a"

    def test_chain_longer_than_rates_stops_at_rates(self, session, make_user):
        top = make_user("top")
        s3 = make_user("s3", sponsor_id=top)
        s2 = make_user("s2", sponsor_id=s3)
        s1 = make_user("s1", sponsor_id=s2)
        seller = session.get(User, make_user("seller", sponsor_id=s1, level_commissions=[4, 2]))

        records = calculate_commissions(_transaction(100), seller, session).records

        assert len(records) == 1 + 2
        assert [r["user_id"] for r in records[1:]] == [s1, s2]
        assert [r["percentage"] for r in records[1:]] == [Decimal("4"), Decimal("2")]

    def test_record_count_is_one_plus_min_of_chain_and_rates(self, session, chain):
        seller = session.get(User, chain["seller"])
        records = calculate_commissions(_transaction(1000), seller, session).records

        assert len(records) == 1 + min(3, 3)
        assert [r["level"] for r in records] == [0, 1, 2, 3]
        assert [r["amount"] for r in records] == [Decimal("100"), Decimal("50"), Decimal("30"), Decimal("10")]

    def test_missing_sponsor_ends_walk(self, session, make_user):
        seller = session.get(User, make_user("orphaned", sponsor_id=9999))
        result = calculate_commissions(_transaction(100), seller, session)

        assert len(result.records) == 1
        assert result.error is None

    def test_json_string_rates_are_parsed(self, session, make_user):
        sponsor = make_user("sponsor")
        seller = session.get(User, make_user("seller", sponsor_id=sponsor, level_commissions="[7, 2]"))

        records = calculate_commissions(_transaction(100), seller, session).records

        assert records[1]["percentage"] == Decimal("7")
        assert records[1]["amount"] == Decimal("7")

    def test_unparsable_rates_fall_back_to_defaults(self, session, make_user):
        user = SimpleNamespace(level_commissions="{not json")

        assert CommissionConfigHelper.get_level_rates(user) == [Decimal("5"), Decimal("3"), Decimal("1")]

    def test_non_list_rates_fall_back_to_defaults(self):
        assert CommissionConfigHelper.get_level_rates(SimpleNamespace(level_commissions=None)) == [5, 3, 1]
        assert CommissionConfigHelper.get_level_rates(SimpleNamespace(level_commissions={"1": 5})) == [5, 3, 1]

    def test_string_decoding_to_scalar_or_object_pays_direct_only(self, session, chain):
        seller = session.get(User, chain["seller"])

        for stored in ("42", '{"a": 1}'):
            seller.level_commissions = stored
            result = calculate_commissions(_transaction(1000), seller, session)

            assert [(r["type"], r["amount"]) for r in result.records] == [("direct", Decimal("100"))]
            assert result.error is None

    def test_string_decoding_to_null_is_swallowed(self, session, chain):
        seller = session.get(User, chain["seller"])
        seller.level_commissions = "null"

        result = calculate_commissions(_transaction(1000), seller, session)

        assert result.records == []
        assert result.swallowed

    def test_empty_rates_pay_direct_only(self, session, chain):
        seller = session.get(User, chain["seller"])
        seller.level_commissions = []

        records = calculate_commissions(_transaction(100), seller, session).records

        assert len(records) == 1

    def test_not_idempotent(self, session, chain):
        seller = session.get(User, chain["seller"])
        first = calculate_commissions(_transaction(500), seller, session).records
        second = calculate_commissions(_transaction(500), seller, session).records

        assert first == second
        assert first is not second
        assert len(first) + len(second) == 8


# =============================================================================
# FAILURES AND CORRUPT DATA
# =============================================================================

class TestFailSoft:

    def test_store_failure_is_swallowed(self):
        user = SimpleNamespace(id=1, username="u", sponsor_id=2, direct_commission=10, level_commissions=[5])

        result = calculate_commissions(_transaction(100), user, BrokenSession())

        assert result.records == []
        assert result.swallowed
        assert isinstance(result.error, OperationalError)

    def test_non_numeric_rate_is_swallowed(self, session, chain):
        seller = session.get(User, chain["seller"])
        seller.level_commissions = [5, "lots", 1]

        result = calculate_commissions(_transaction(100), seller, session)

        assert result.records == []
        assert result.swallowed

    def test_cyclic_chain_terminates(self, session, make_user):
        x = make_user("x", level_commissions=[1] * 10)
        y = make_user("y", sponsor_id=x)
        session.get(User, x).sponsor_id = y
        session.commit()

        records = calculate_commissions(_transaction(100), session.get(User, x), session).records

        assert [r["user_id"] for r in records] == [x, y]
        assert check_sponsor_chain_integrity(session, x) is False
        assert sorted(find_cyclic_users(session)) == sorted([x, y])

    def test_acyclic_chain_passes_integrity_check(self, session, chain):
        assert check_sponsor_chain_integrity(session, chain["seller"]) is True
        assert find_cyclic_users(session) == []
