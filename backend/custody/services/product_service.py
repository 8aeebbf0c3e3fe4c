# Overview: Service-layer operations for the product registry; encapsulates business logic and database work.

"""
Product Registry

WHY: Owns product identity and metadata. A product is created by its
manufacturer, who is also its first custodian; the manufacturer never
changes, and only the manufacturer can recall.

COMPOSITE OPERATIONS (one unit of work each):
- register_product: allocate id + create product + counters + "manufacture"
  checkpoint attesting the lot number
- recall_product: "recall" checkpoint attesting the reason, then RECALLED
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, UnauthorizedError, ValidationError
from ..extensions import db
from ..hashing import digest_text
from ..models import Product
from ..models.products import PRODUCT_STATUS_CREATED, PRODUCT_STATUS_RECALLED, PRODUCT_STATUSES
from ..time_utils import current_tick
from ..validation import (
    MAX_LONG_TEXT_LENGTH,
    optional_text,
    require_id,
    require_identity,
    require_text,
    require_tick,
)
from . import sequence_service
from .authorization_service import can_act_for
from .checkpoint_service import (
    CHECKPOINT_TYPE_MANUFACTURE,
    CHECKPOINT_TYPE_RECALL,
    append_checkpoint,
    ensure_not_recalled,
    verify_checkpoint_chain,
)
from .concurrency import lock_product, run_atomic


RECALL_LOCATION = "recall-notice"


def register_product(
    *,
    caller: str,
    name: str,
    description: str,
    lot_number: str,
    category: str,
    origin_location: str,
    metadata_uri: str | None = None,
) -> int:
    """
    Register a new product manufactured by the caller.

    The caller becomes both manufacturer and current custodian. The initial
    "manufacture" checkpoint (id 0) is written in the same unit of work, at
    origin_location, attesting the SHA-256 of the lot number.

    Returns:
        int: The new product id
    """
    caller = require_identity(caller, "caller")
    name = require_text(name, "name")
    description = optional_text(description, "description", max_length=MAX_LONG_TEXT_LENGTH) or ""
    lot_number = require_text(lot_number, "lot_number")
    category = require_text(category, "category")
    origin_location = require_text(origin_location, "origin_location")
    metadata_uri = optional_text(metadata_uri, "metadata_uri", max_length=1024)

    def _op():
        product_id = sequence_service.next_product_id()

        product = Product(
            id=product_id,
            name=name,
            description=description,
            category=category,
            origin_location=origin_location,
            lot_number=lot_number,
            metadata_uri=metadata_uri,
            manufacturer=caller,
            current_custodian=caller,
            status=PRODUCT_STATUS_CREATED,
            created_at=current_tick(),
        )
        db.session.add(product)
        db.session.flush()

        sequence_service.create_product_sequences(product_id)

        append_checkpoint(
            product,
            verifier=caller,
            location=origin_location,
            checkpoint_type=CHECKPOINT_TYPE_MANUFACTURE,
            attestation_hash=digest_text(lot_number),
        )
        return product_id

    product_id = run_atomic(_op)
    current_app.logger.info("Product %s registered by %s (lot %s)", product_id, caller, lot_number)
    return product_id


def set_shipping_details(*, caller: str, product_id: int, destination: str, expected_arrival: int) -> Product:
    """
    Overwrite destination and expected arrival.

    Allowed for the current custodian or an active verifier of the
    custodian's organization, whatever the product's status.
    """
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    destination = require_text(destination, "destination")
    expected_arrival = require_tick(expected_arrival, "expected_arrival")

    def _op():
        product = lock_product(product_id)
        if not can_act_for(caller, product.current_custodian):
            current_app.logger.warning("Shipping update denied for %s on product %s", caller, product_id)
            raise UnauthorizedError(
                f"{caller} is neither the custodian of product {product_id} nor an authorized verifier"
            )

        product.destination = destination
        product.expected_arrival = expected_arrival
        db.session.flush()
        return product

    return run_atomic(_op)


def recall_product(*, caller: str, product_id: int, reason: str) -> Product:
    """
    Recall a product (manufacturer only).

    The "recall" checkpoint is appended first, attesting the SHA-256 of the
    reason, and only then is the status set to RECALLED; afterwards no
    further checkpoints or transfers are possible.

    Raises:
        NotFoundError: Product missing
        UnauthorizedError: Caller is not the manufacturer
        InvalidStateError: Product already recalled
    """
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    reason = require_text(reason, "reason", max_length=MAX_LONG_TEXT_LENGTH)

    def _op():
        product = lock_product(product_id)
        if product.manufacturer != caller:
            current_app.logger.warning("Recall denied for %s on product %s", caller, product_id)
            raise UnauthorizedError(f"Only the manufacturer may recall product {product_id}")
        ensure_not_recalled(product)

        append_checkpoint(
            product,
            verifier=caller,
            location=RECALL_LOCATION,
            checkpoint_type=CHECKPOINT_TYPE_RECALL,
            attestation_hash=digest_text(reason),
            observations=reason,
        )
        product.status = PRODUCT_STATUS_RECALLED
        db.session.flush()
        return product

    product = run_atomic(_op)
    current_app.logger.info("Product %s recalled by %s", product_id, caller)
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def list_products(
    *,
    status: str | None = None,
    manufacturer: str | None = None,
    custodian: str | None = None,
) -> list[Product]:
    """Products in id order, optionally filtered by status, manufacturer or current custodian."""
    query = db.session.query(Product)
    if status is not None:
        if status not in PRODUCT_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: {', '.join(sorted(PRODUCT_STATUSES))}"
            )
        query = query.filter_by(status=status)
    if manufacturer is not None:
        query = query.filter_by(manufacturer=manufacturer)
    if custodian is not None:
        query = query.filter_by(current_custodian=custodian)
    return query.order_by(Product.id.asc()).all()


def verify_authenticity(product_id: int) -> dict:
    """
    Summary for a scanned product.

    authentic means: registered, not recalled, and its checkpoint chain
    recomputes cleanly.
    """
    product = get_product(product_id)
    chain_intact = verify_checkpoint_chain(product_id)
    return {
        "product_id": product.id,
        "authentic": chain_intact and product.status != PRODUCT_STATUS_RECALLED,
        "manufacturer": product.manufacturer,
        "lot_number": product.lot_number,
        "status": product.status,
        "chain_intact": chain_intact,
    }
