# Overview: Service-layer operations for the checkpoint ledger; encapsulates business logic and database work.

"""
Checkpoint Ledger

================================================================================
PURPOSE: Append-only, hash-chained sequence of waypoints per product
================================================================================

RULES (NON-NEGOTIABLE):
1. checkpoint_id is gapless per product, starting at 0, never reused
2. Checkpoints are never updated or deleted
3. No checkpoint is ever written for a RECALLED product through add_checkpoint
4. Every checkpoint re-derives the product status from its type:
       "delivery"    -> DELIVERED
       "retail-sale" -> SOLD
       anything else -> IN_TRANSIT
   SOLD is terminal for derivation: later checkpoints leave it SOLD.

INTERNAL WRITERS:
append_checkpoint() performs the write without authorization checks or a
commit. Registration, transfer acceptance and recall call it inside their
own unit of work after doing their own checks.
================================================================================
"""

from __future__ import annotations

from flask import current_app

from ..errors import InvalidStateError, NotFoundError, UnauthorizedError
from ..extensions import db
from ..hashing import GENESIS_HASH, compute_entry_hash, verify_chain
from ..models import Checkpoint, Product
from ..models.products import (
    PRODUCT_STATUS_DELIVERED,
    PRODUCT_STATUS_IN_TRANSIT,
    PRODUCT_STATUS_RECALLED,
    PRODUCT_STATUS_SOLD,
)
from ..time_utils import current_tick
from ..validation import (
    MAX_LONG_TEXT_LENGTH,
    optional_float,
    optional_text,
    require_digest,
    require_id,
    require_identity,
    require_text,
)
from . import sequence_service
from .authorization_service import can_act_for
from .concurrency import lock_product, run_atomic


# Reserved checkpoint types
CHECKPOINT_TYPE_MANUFACTURE = "manufacture"
CHECKPOINT_TYPE_TRANSFER = "transfer"
CHECKPOINT_TYPE_RECALL = "recall"
CHECKPOINT_TYPE_DELIVERY = "delivery"
CHECKPOINT_TYPE_RETAIL_SALE = "retail-sale"

STATUS_BY_CHECKPOINT_TYPE = {
    CHECKPOINT_TYPE_DELIVERY: PRODUCT_STATUS_DELIVERED,
    CHECKPOINT_TYPE_RETAIL_SALE: PRODUCT_STATUS_SOLD,
}


def derive_status(current_status: str, checkpoint_type: str) -> str:
    if current_status in (PRODUCT_STATUS_SOLD, PRODUCT_STATUS_RECALLED):
        return current_status
    return STATUS_BY_CHECKPOINT_TYPE.get(checkpoint_type, PRODUCT_STATUS_IN_TRANSIT)


def ensure_not_recalled(product: Product) -> None:
    if product.status == PRODUCT_STATUS_RECALLED:
        raise InvalidStateError(f"Product {product.id} has been recalled")


def _latest_checkpoint(product_id: int) -> Checkpoint | None:
    return (
        db.session.query(Checkpoint)
        .filter_by(product_id=product_id)
        .order_by(Checkpoint.checkpoint_id.desc())
        .first()
    )


def append_checkpoint(
    product: Product,
    *,
    verifier: str,
    location: str,
    checkpoint_type: str,
    attestation_hash: str,
    temperature: float | None = None,
    humidity: float | None = None,
    observations: str | None = None,
) -> Checkpoint:
    """
    Write the next checkpoint for an already-locked product.

    No authorization or state checks and no commit; callers own both.
    The custodian field snapshots product.current_custodian as it is now.
    """
    checkpoint_id = sequence_service.next_checkpoint_id(product.id)

    previous = _latest_checkpoint(product.id)
    prev_hash = previous.entry_hash if previous else GENESIS_HASH

    checkpoint = Checkpoint(
        product_id=product.id,
        checkpoint_id=checkpoint_id,
        location=location,
        recorded_at=current_tick(),
        custodian=product.current_custodian,
        verifier=verifier,
        checkpoint_type=checkpoint_type,
        temperature=temperature,
        humidity=humidity,
        observations=observations,
        attestation_hash=attestation_hash,
        prev_hash=prev_hash,
    )
    checkpoint.entry_hash = compute_entry_hash(prev_hash, checkpoint.hashed_fields())

    db.session.add(checkpoint)
    product.status = derive_status(product.status, checkpoint_type)
    db.session.flush()
    return checkpoint


def add_checkpoint(
    *,
    caller: str,
    product_id: int,
    location: str,
    checkpoint_type: str,
    attestation_hash,
    temperature: float | None = None,
    humidity: float | None = None,
    observations: str | None = None,
) -> int:
    """
    Record a waypoint for a product.

    The caller must be the product's current custodian or an active verifier
    of the custodian's organization.

    Returns:
        int: The new checkpoint id

    Raises:
        NotFoundError: Product (or its checkpoint counter) missing
        InvalidStateError: Product recalled (checked before the caller, so
            every caller sees the recall)
        UnauthorizedError: Caller may not act for the custodian
    """
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    location = require_text(location, "location")
    checkpoint_type = require_text(checkpoint_type, "checkpoint_type", max_length=64)
    attestation_hash = require_digest(attestation_hash, "attestation_hash")
    temperature = optional_float(temperature, "temperature")
    humidity = optional_float(humidity, "humidity")
    observations = optional_text(observations, "observations", max_length=MAX_LONG_TEXT_LENGTH)

    def _op():
        product = lock_product(product_id)
        ensure_not_recalled(product)

        if not can_act_for(caller, product.current_custodian):
            current_app.logger.warning(
                "Checkpoint denied: %s is not custodian of product %s or its verifier",
                caller, product_id,
            )
            raise UnauthorizedError(
                f"{caller} is neither the custodian of product {product_id} nor an authorized verifier"
            )

        checkpoint = append_checkpoint(
            product,
            verifier=caller,
            location=location,
            checkpoint_type=checkpoint_type,
            attestation_hash=attestation_hash,
            temperature=temperature,
            humidity=humidity,
            observations=observations,
        )
        return checkpoint.checkpoint_id

    return run_atomic(_op)


def get_checkpoint(product_id: int, checkpoint_id: int) -> Checkpoint:
    checkpoint = db.session.get(Checkpoint, (product_id, checkpoint_id))
    if not checkpoint:
        raise NotFoundError("Checkpoint", f"{product_id}/{checkpoint_id}")
    return checkpoint


def list_checkpoints(product_id: int) -> list[Checkpoint]:
    """A product's full ledger in checkpoint_id order."""
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product", product_id)
    return (
        db.session.query(Checkpoint)
        .filter_by(product_id=product_id)
        .order_by(Checkpoint.checkpoint_id.asc())
        .all()
    )


def verify_checkpoint_chain(product_id: int) -> bool:
    """
    Recompute every entry hash of a product's ledger.

    Also fails if checkpoint ids are not exactly 0..n-1.
    """
    checkpoints = list_checkpoints(product_id)
    if [c.checkpoint_id for c in checkpoints] != list(range(len(checkpoints))):
        return False
    return verify_chain(
        {"prev_hash": c.prev_hash, "entry_hash": c.entry_hash, "fields": c.hashed_fields()}
        for c in checkpoints
    )
