# Overview: Named atomic counters used to mint human-readable document numbers.

"""
Sequence Generator

CONTRACT: next_value(name) atomically increments the named counter and
returns the new value. A missing counter starts at 0, so its first value
is 1. No two callers ever observe the same value for the same name.

ATOMICITY: The increment is a single UPDATE ... SET seq = seq + 1. The
updated row stays write-locked until commit, so the read-back in the same
transaction sees exactly our increment. When the row does not exist yet we
insert it; a concurrent insert that loses the unique-constraint race falls
back to the UPDATE path.

GAPS: Allocation is committed on its own. If the caller later
fails to persist the document that uses the number, the number is lost and
the sequence has a gap. Gaps are accepted; only uniqueness matters.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Counter
from .concurrency import run_with_retry


logger = logging.getLogger(__name__)

PURCHASE_ORDER_COUNTER = "purchaseOrder"
ORDER_NUMBER_PREFIX = "PO"
ORDER_NUMBER_PAD = 6


class SequenceError(Exception):
    """Raised when sequence operations fail."""
    pass


def _increment(name: str) -> int | None:
    stmt = (
        update(Counter)
        .where(Counter.name == name)
        .values(seq=Counter.seq + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    return db.session.execute(select(Counter.seq).where(Counter.name == name)).scalar_one()


def next_value(name: str) -> int:
    """
    Atomically allocate and commit the next value of the named counter.

    Args:
        name: Counter name (e.g., "purchaseOrder")

    Returns:
        The new counter value (1 for a fresh counter)
    """
    if not name:
        raise SequenceError("Counter name is required")

    def _op() -> int:
        value = _increment(name)
        if value is None:
            try:
                with db.session.begin_nested():
                    db.session.add(Counter(name=name, seq=1))
                value = 1
            except IntegrityError:
                # Another caller created the row first; increment theirs
                value = _increment(name)
                if value is None:
                    raise
        db.session.commit()
        return value

    value = run_with_retry(_op)
    logger.debug("Allocated %s=%d", name, value)
    return value


def current_value(name: str) -> int:
    """Return the last allocated value (0 when the counter does not exist)."""
    seq = db.session.execute(select(Counter.seq).where(Counter.name == name)).scalar_one_or_none()
    return seq or 0


def ensure_counter(name: str) -> Counter:
    """
    Create the named counter at 0 if it does not exist (idempotent).

    Used at bootstrap so the counter is visible before the first allocation.
    """
    counter = db.session.query(Counter).filter_by(name=name).first()
    if counter:
        return counter
    counter = Counter(name=name, seq=0)
    db.session.add(counter)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        counter = db.session.query(Counter).filter_by(name=name).one()
    return counter


def list_counters() -> list[Counter]:
    return db.session.query(Counter).order_by(Counter.name.asc()).all()


def format_order_number(seq: int) -> str:
    """Format a sequence value as an order number: 42 -> "PO-000042"."""
    return f"{ORDER_NUMBER_PREFIX}-{seq:0{ORDER_NUMBER_PAD}d}"


def next_order_number() -> str:
    """Allocate the next purchase order number."""
    return format_order_number(next_value(PURCHASE_ORDER_COUNTER))
