# backend/custody/services/transfer_service.py
"""
Custody transfer service.

WHY: Moving custody needs both parties. The current custodian offers the
product, and only the named recipient can take it. The custodian changes
exactly when a transfer is accepted.

LIFECYCLE:
1. PENDING: Initiated by the current custodian
2. COMPLETED: Accepted by the recipient (custodian changes, "transfer" checkpoint)
3. REJECTED: Declined by the recipient
4. CANCELLED: Withdrawn by the initiator

COMPLETED, REJECTED and CANCELLED are final: any further accept, reject or
cancel fails with InvalidStateError and changes nothing.
"""
from __future__ import annotations

import json

from flask import current_app

from ..errors import InvalidStateError, NotFoundError, UnauthorizedError, ValidationError
from ..extensions import db
from ..hashing import digest_text
from ..models import CustodyTransfer, Product
from ..models.custody import (
    TRANSFER_STATUS_CANCELLED,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_REJECTED,
    TRANSFER_STATUSES,
)
from ..time_utils import current_tick
from ..validation import MAX_LONG_TEXT_LENGTH, optional_text, require_id, require_identity, require_text
from . import sequence_service
from .checkpoint_service import CHECKPOINT_TYPE_TRANSFER, append_checkpoint, ensure_not_recalled
from .concurrency import lock_for_update, lock_product, run_atomic


TRANSFER_LOCATION = "custody-handover"


def initiate_transfer(
    *,
    caller: str,
    product_id: int,
    recipient: str,
    conditions: str | None = None,
) -> int:
    """
    Offer custody of a product to a recipient (status: PENDING).

    Returns:
        int: The new transfer id

    Raises:
        NotFoundError: Product (or its transfer counter) missing
        UnauthorizedError: Caller is not the current custodian
        InvalidStateError: Product recalled
        ValidationError: Recipient is already the custodian
    """
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    recipient = require_identity(recipient, "recipient")
    conditions = optional_text(conditions, "conditions", max_length=MAX_LONG_TEXT_LENGTH)

    def _op():
        product = lock_product(product_id)
        if product.current_custodian != caller:
            current_app.logger.warning("Transfer initiation denied for %s on product %s", caller, product_id)
            raise UnauthorizedError(f"Only the current custodian may transfer product {product_id}")
        ensure_not_recalled(product)
        if recipient == caller:
            raise ValidationError("Cannot transfer custody to the current custodian")

        transfer_id = sequence_service.next_transfer_id(product_id)
        transfer = CustodyTransfer(
            product_id=product_id,
            transfer_id=transfer_id,
            initiator=caller,
            recipient=recipient,
            initiated_at=current_tick(),
            status=TRANSFER_STATUS_PENDING,
            conditions=conditions,
        )
        db.session.add(transfer)
        db.session.flush()
        return transfer_id

    return run_atomic(_op)


def _lock_transfer(product_id: int, transfer_id: int) -> CustodyTransfer:
    transfer = lock_for_update(
        db.session.query(CustodyTransfer).filter_by(product_id=product_id, transfer_id=transfer_id)
    ).first()
    if not transfer:
        raise NotFoundError("Transfer", f"{product_id}/{transfer_id}")
    return transfer


def _ensure_pending(transfer: CustodyTransfer) -> None:
    if transfer.status != TRANSFER_STATUS_PENDING:
        raise InvalidStateError(
            f"Transfer {transfer.product_id}/{transfer.transfer_id} is {transfer.status}, not PENDING"
        )


def _ensure_caller(transfer: CustodyTransfer, caller: str, expected: str, role: str) -> None:
    if caller != expected:
        current_app.logger.warning(
            "Transfer %s/%s denied for %s (not the %s)",
            transfer.product_id, transfer.transfer_id, caller, role,
        )
        raise UnauthorizedError(
            f"Only the {role} may act on transfer {transfer.product_id}/{transfer.transfer_id}"
        )


def _handover_attestation(transfer: CustodyTransfer) -> str:
    return digest_text(json.dumps({
        "product_id": transfer.product_id,
        "transfer_id": transfer.transfer_id,
        "initiator": transfer.initiator,
        "recipient": transfer.recipient,
        "completed_at": transfer.completed_at,
    }, sort_keys=True))


def accept_transfer(
    *,
    caller: str,
    product_id: int,
    transfer_id: int,
    location: str | None = None,
) -> CustodyTransfer:
    """
    Accept a pending transfer; the caller becomes custodian.

    Appends a "transfer" checkpoint (custodian snapshot = the new custodian)
    in the same unit of work. Fails InvalidStateError if the product has been
    recalled or if the initiator no longer holds custody.

    Raises:
        NotFoundError: Transfer missing
        UnauthorizedError: Caller is not the recipient
        InvalidStateError: Transfer not PENDING, product recalled, or stale offer
    """
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    transfer_id = require_id(transfer_id, "transfer_id")
    location = optional_text(location, "location") or TRANSFER_LOCATION

    def _op():
        transfer = _lock_transfer(product_id, transfer_id)
        _ensure_caller(transfer, caller, transfer.recipient, "recipient")
        _ensure_pending(transfer)

        product = lock_product(product_id)
        ensure_not_recalled(product)
        if product.current_custodian != transfer.initiator:
            raise InvalidStateError(
                f"Transfer {product_id}/{transfer_id} was offered by {transfer.initiator}, "
                f"who no longer holds custody"
            )

        transfer.completed_at = current_tick()
        transfer.status = TRANSFER_STATUS_COMPLETED
        product.current_custodian = caller

        append_checkpoint(
            product,
            verifier=caller,
            location=location,
            checkpoint_type=CHECKPOINT_TYPE_TRANSFER,
            attestation_hash=_handover_attestation(transfer),
            observations=transfer.conditions,
        )
        return transfer

    transfer = run_atomic(_op)
    current_app.logger.info("Product %s custody transferred to %s (transfer %s)", product_id, caller, transfer_id)
    return transfer


def reject_transfer(*, caller: str, product_id: int, transfer_id: int, reason: str) -> CustodyTransfer:
    """
    Decline a pending transfer. The reason replaces the transfer's conditions.
    """
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    transfer_id = require_id(transfer_id, "transfer_id")
    reason = require_text(reason, "reason", max_length=MAX_LONG_TEXT_LENGTH)

    def _op():
        transfer = _lock_transfer(product_id, transfer_id)
        _ensure_caller(transfer, caller, transfer.recipient, "recipient")
        _ensure_pending(transfer)

        transfer.completed_at = current_tick()
        transfer.status = TRANSFER_STATUS_REJECTED
        transfer.conditions = reason
        db.session.flush()
        return transfer

    return run_atomic(_op)


def cancel_transfer(*, caller: str, product_id: int, transfer_id: int) -> CustodyTransfer:
    """Withdraw a pending transfer (initiator only)."""
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    transfer_id = require_id(transfer_id, "transfer_id")

    def _op():
        transfer = _lock_transfer(product_id, transfer_id)
        _ensure_caller(transfer, caller, transfer.initiator, "initiator")
        _ensure_pending(transfer)

        transfer.completed_at = current_tick()
        transfer.status = TRANSFER_STATUS_CANCELLED
        db.session.flush()
        return transfer

    return run_atomic(_op)


def get_transfer(product_id: int, transfer_id: int) -> CustodyTransfer:
    transfer = db.session.get(CustodyTransfer, (product_id, transfer_id))
    if not transfer:
        raise NotFoundError("Transfer", f"{product_id}/{transfer_id}")
    return transfer


def list_transfers(product_id: int, *, status: str | None = None) -> list[CustodyTransfer]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product", product_id)
    query = db.session.query(CustodyTransfer).filter_by(product_id=product_id)
    if status is not None:
        if status not in TRANSFER_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: {', '.join(sorted(TRANSFER_STATUSES))}"
            )
        query = query.filter_by(status=status)
    return query.order_by(CustodyTransfer.transfer_id.asc()).all()
