# Overview: Atomic allocation of invoice sequence numbers and display numbers.

from __future__ import annotations

import re

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Invoice, InvoiceSequence


INVOICE_SEQUENCE_NAME = "invoice"
INVOICE_NUMBER_PAD = 3


class SequenceError(Exception):
    """Raised when invoice sequence operations fail."""


def format_invoice_number(sequence: int, prefix: str, pad: int = INVOICE_NUMBER_PAD) -> str:
    """GM-001 ... GM-999, GM-1000 (width grows, never wraps)."""
    if sequence < 1:
        raise SequenceError("sequence must be >= 1")
    return f"{prefix}-{sequence:0{pad}d}"


def _max_persisted_sequence() -> int:
    return int(db.session.query(func.coalesce(func.max(Invoice.invoice_number_sequence), 0)).scalar() or 0)


def _current_counter() -> int | None:
    return (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(name=INVOICE_SEQUENCE_NAME)
        .scalar()
    )


def _seed_counter(next_number: int) -> bool:
    """Insert the counter row. False if another writer created it first."""
    try:
        with db.session.begin_nested():
            db.session.add(InvoiceSequence(name=INVOICE_SEQUENCE_NAME, next_number=next_number))
        return True
    except IntegrityError:
        return False


def next_invoice_sequence() -> int:
    """
    Atomically allocate the next invoice sequence.

    The counter row is bumped with a single UPDATE, so two callers can never
    receive the same value. On first use the counter is seeded from the
    highest persisted sequence (0 when there are no invoices).

    Runs inside the caller's transaction; the caller commits.
    """
    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.name == INVOICE_SEQUENCE_NAME)
        .values(next_number=InvoiceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        allocated = _max_persisted_sequence() + 1
        if _seed_counter(allocated + 1):
            return allocated
        # Lost the seeding race; the row exists now
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise SequenceError("invoice sequence counter is unavailable")

    return int(_current_counter()) - 1


def reserve_sequence(sequence: int) -> None:
    """
    Make sure the counter never hands out `sequence` (client-supplied) again.
    """
    stmt = (
        update(InvoiceSequence)
        .where(
            InvoiceSequence.name == INVOICE_SEQUENCE_NAME,
            InvoiceSequence.next_number <= sequence,
        )
        .values(next_number=sequence + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount or _current_counter() is not None:
        return

    seed = max(_max_persisted_sequence(), sequence) + 1
    if not _seed_counter(seed):
        db.session.execute(stmt)


def peek_next_sequence() -> int:
    """Next value the counter would hand out. Does not consume it."""
    current = _current_counter()
    if current is None:
        return _max_persisted_sequence() + 1
    return max(int(current), _max_persisted_sequence() + 1)


def parse_invoice_number(invoice_number: str, prefix: str) -> int | None:
    """Sequence encoded in a PREFIX-N number ("GM-042" -> 42); None for anything else."""
    match = re.fullmatch(rf"{re.escape(prefix)}-(\d+)", (invoice_number or "").strip())
    if match is None:
        return None
    return int(match.group(1)) or None


def ensure_counter() -> int:
    """
    Create the counter row if it does not exist yet, seeded past the highest
    persisted sequence. Returns the next value it will hand out.

    Runs inside the caller's transaction; the caller commits.
    """
    if _current_counter() is None:
        _seed_counter(_max_persisted_sequence() + 1)
    return peek_next_sequence()
