# commissions/chains.py
"""
Sponsor chain walking.

The chain is followed one lookup per level. A sponsor id seen twice in the same
walk ends it, so corrupted (cyclic) sponsor data cannot loop forever.
"""
import logging
from typing import Iterator, Optional, Set, Tuple

from sqlalchemy.orm import Session

from models import User

logger = logging.getLogger(__name__)


class SponsorCycleError(Exception):
    """A sponsor chain revisits a user."""

    def __init__(self, user_id, level):
        self.user_id = user_id
        self.level = level
        super().__init__(f"Cycle detected in sponsor chain at user {user_id} (level {level})")


def walk_upline(
        session: Session,
        user: User,
        max_depth: Optional[int] = None,
        strict: bool = False
) -> Iterator[Tuple[User, int]]:
    """
    Yield (sponsor, level) pairs going up from ``user``, level starting at 1.

    Stops at a root (no sponsor), a missing sponsor record, or ``max_depth``.
    On a cycle it logs and stops, or raises SponsorCycleError when ``strict``.
    """
    visited: Set[int] = {user.id}
    current_sponsor_id = user.sponsor_id
    level = 1

    while current_sponsor_id and (max_depth is None or level <= max_depth):
        if current_sponsor_id in visited:
            if strict:
                raise SponsorCycleError(current_sponsor_id, level)
            logger.error(f"Cycle detected in sponsor chain of user {user.id} at user {current_sponsor_id}")
            return
        visited.add(current_sponsor_id)

        sponsor = session.get(User, current_sponsor_id)
        if sponsor is None:
            logger.warning(f"Sponsor {current_sponsor_id} not found for level {level} of user {user.id}")
            return

        yield sponsor, level

        current_sponsor_id = sponsor.sponsor_id
        level += 1


def check_sponsor_chain_integrity(session: Session, user_id: int) -> bool:
    """Check that a user's sponsor chain reaches a root without cycles"""
    user = session.get(User, user_id)
    if user is None:
        return False

    try:
        for _ in walk_upline(session, user, strict=True):
            pass
    except SponsorCycleError:
        return False
    return True


def find_cyclic_users(session: Session):
    """IDs of users whose sponsor chain is cyclic."""
    user_ids = [row[0] for row in session.query(User.id).filter(User.sponsor_id.isnot(None)).all()]
    cyclic = [uid for uid in user_ids if not check_sponsor_chain_integrity(session, uid)]

    if cyclic:
        logger.warning(f"Found {len(cyclic)} users with cyclic sponsor chains: {cyclic}")
    else:
        logger.info("No cyclic sponsor chains found")
    return cyclic
