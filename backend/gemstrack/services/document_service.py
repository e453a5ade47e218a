# Overview: Service-layer operations for document sequences; mints human-readable ids.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import SequenceCounter


SEQUENCE_INVOICE = "invoice"
SEQUENCE_ORDER = "order"

DEFAULT_SEQUENCES = (SEQUENCE_INVOICE, SEQUENCE_ORDER)


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def format_document_id(prefix: str, value: int, pad: int | None = None) -> str:
    """"INV", 42 -> "INV-000042"."""
    if pad is None:
        pad = current_app.config.get("SEQUENCE_PAD", 6)
    return f"{prefix}-{value:0{pad}d}"


def read_sequence(name: str) -> SequenceCounter:
    """
    Read phase: fetch the counter row for `name`.

    A missing counter comes back as a transient row (not yet in the session);
    allocate_next() adds it during the write phase.
    """
    if not name:
        raise DocumentSequenceError("sequence name is required")
    counter = db.session.query(SequenceCounter).filter_by(name=name).first()
    if counter is None:
        counter = SequenceCounter(name=name, last_value=0)
    return counter


def allocate_next(counter: SequenceCounter, prefix: str) -> str:
    """
    Write phase: bump a counter read earlier in the same transaction.

    The version column makes a concurrent bump fail the flush with
    StaleDataError, which run_with_retry retries. Counters created lazily
    here are protected only by the unique name; seed them with
    ensure_sequences() at bootstrap.
    """
    if counter not in db.session:
        db.session.add(counter)
    counter.last_value = (counter.last_value or 0) + 1
    db.session.flush()
    return format_document_id(prefix, counter.last_value)


def ensure_sequences(names=DEFAULT_SEQUENCES) -> int:
    """
    Seed counter rows so transactions never have to create them.

    Safe to call repeatedly (idempotent). Returns the number created.
    """
    created = 0
    for name in names:
        exists = db.session.query(SequenceCounter.id).filter_by(name=name).first()
        if not exists:
            db.session.add(SequenceCounter(name=name, last_value=0))
            created += 1
    db.session.commit()
    return created


def peek_sequence(name: str) -> int:
    """Last value handed out for `name` (0 if never used)."""
    value = db.session.query(SequenceCounter.last_value).filter_by(name=name).scalar()
    return value or 0
