# Overview: Atomic id allocation for products, checkpoints and transfers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConcurrencyConflictError, NotFoundError
from ..extensions import db
from ..models import IdSequence
from ..models.sequences import GLOBAL_SCOPE, SEQUENCE_CHECKPOINT, SEQUENCE_PRODUCT, SEQUENCE_TRANSFER


def create_sequence(*, kind: str, scope_id: int) -> IdSequence:
    """Create an allocator whose first allocation returns 0."""
    seq = IdSequence(kind=kind, scope_id=scope_id, next_value=0)
    db.session.add(seq)
    db.session.flush()
    return seq


def allocate_id(*, kind: str, scope_id: int, create_missing: bool = False) -> int:
    """
    Atomically return the sequence's next value and advance it by one.

    The increment is a single UPDATE, so two units of work can never
    receive the same value. With create_missing=False a missing sequence
    raises NotFoundError("Counter", ...).
    """
    stmt = (
        update(IdSequence)
        .where(
            IdSequence.kind == kind,
            IdSequence.scope_id == scope_id,
        )
        .values(next_value=IdSequence.next_value + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(IdSequence.next_value)
            .filter_by(kind=kind, scope_id=scope_id)
            .scalar()
        )
        return current - 1

    if not create_missing:
        raise NotFoundError("Counter", f"{kind}:{scope_id}")

    seq = IdSequence(kind=kind, scope_id=scope_id, next_value=1)
    db.session.add(seq)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Another unit of work created it first; this attempt must be re-issued
        raise ConcurrencyConflictError(f"Sequence {kind}:{scope_id} was initialized concurrently") from exc
    return 0


def next_product_id() -> int:
    return allocate_id(kind=SEQUENCE_PRODUCT, scope_id=GLOBAL_SCOPE, create_missing=True)


def next_checkpoint_id(product_id: int) -> int:
    return allocate_id(kind=SEQUENCE_CHECKPOINT, scope_id=product_id)


def next_transfer_id(product_id: int) -> int:
    return allocate_id(kind=SEQUENCE_TRANSFER, scope_id=product_id)


def create_product_sequences(product_id: int) -> None:
    """Per-product checkpoint and transfer allocators, created at registration."""
    create_sequence(kind=SEQUENCE_CHECKPOINT, scope_id=product_id)
    create_sequence(kind=SEQUENCE_TRANSFER, scope_id=product_id)


def peek_next_id(*, kind: str, scope_id: int) -> int | None:
    """Value the next allocation would return, without allocating (None if missing)."""
    return (
        db.session.query(IdSequence.next_value)
        .filter_by(kind=kind, scope_id=scope_id)
        .scalar()
    )
