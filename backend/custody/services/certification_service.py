# Overview: Service-layer operations for certifications; encapsulates business logic and database work.

"""
Certification Registry

One live certification per (product, cert_type). Issuing the same type
again replaces the previous record entirely (including a revocation).
"Expired" is never stored; validity is derived on read from the ledger clock.
"""

from __future__ import annotations

from flask import current_app

from ..errors import InvalidStateError, NotFoundError, UnauthorizedError
from ..extensions import db
from ..models import Certification, Product
from ..models.compliance import CERT_STATUS_REVOKED, CERT_STATUS_VALID
from ..time_utils import current_tick
from ..validation import optional_text, require_digest, require_id, require_identity, require_text, require_tick
from .authorization_service import can_act_for
from .concurrency import lock_for_update, lock_product, run_atomic


def add_certification(
    *,
    caller: str,
    product_id: int,
    cert_type: str,
    expires_at: int,
    cert_hash,
    uri: str | None = None,
) -> Certification:
    """
    Issue (or re-issue) a certification.

    The caller must be the manufacturer or an active verifier of the
    manufacturer's organization, and expires_at must lie strictly after the
    current tick.

    Raises:
        NotFoundError: Product missing
        UnauthorizedError: Caller may not act for the manufacturer
        InvalidStateError: expires_at <= current tick
    """
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    cert_type = require_text(cert_type, "cert_type", max_length=64)
    expires_at = require_tick(expires_at, "expires_at")
    cert_hash = require_digest(cert_hash, "cert_hash")
    uri = optional_text(uri, "uri", max_length=1024)

    def _op():
        product = lock_product(product_id)
        if not can_act_for(caller, product.manufacturer):
            current_app.logger.warning("Certification denied for %s on product %s", caller, product_id)
            raise UnauthorizedError(
                f"{caller} is neither the manufacturer of product {product_id} nor an authorized verifier"
            )

        now = current_tick()
        if expires_at <= now:
            raise InvalidStateError(f"expires_at {expires_at} must be after the current tick {now}")

        cert = lock_for_update(
            db.session.query(Certification).filter_by(product_id=product_id, cert_type=cert_type)
        ).first()
        if cert is None:
            cert = Certification(product_id=product_id, cert_type=cert_type)
            db.session.add(cert)

        cert.issuer = caller
        cert.issued_at = now
        cert.expires_at = expires_at
        cert.cert_hash = cert_hash
        cert.uri = uri
        cert.status = CERT_STATUS_VALID
        db.session.flush()
        return cert

    cert = run_atomic(_op)
    current_app.logger.info("Certification %s issued for product %s by %s", cert_type, product_id, caller)
    return cert


def revoke_certification(*, caller: str, product_id: int, cert_type: str) -> Certification:
    """
    Revoke a certification (original issuer only).

    Raises:
        NotFoundError: No certification of that type
        UnauthorizedError: Caller is not the issuer
        InvalidStateError: Already revoked
    """
    caller = require_identity(caller, "caller")
    product_id = require_id(product_id, "product_id")
    cert_type = require_text(cert_type, "cert_type", max_length=64)

    def _op():
        lock_product(product_id)
        cert = lock_for_update(
            db.session.query(Certification).filter_by(product_id=product_id, cert_type=cert_type)
        ).first()
        if not cert:
            raise NotFoundError("Certification", f"{product_id}/{cert_type}")
        if cert.issuer != caller:
            current_app.logger.warning("Certification revoke denied for %s on %s/%s", caller, product_id, cert_type)
            raise UnauthorizedError(f"Only the issuer may revoke certification {product_id}/{cert_type}")
        if cert.status == CERT_STATUS_REVOKED:
            raise InvalidStateError(f"Certification {product_id}/{cert_type} is already revoked")

        cert.status = CERT_STATUS_REVOKED
        db.session.flush()
        return cert

    cert = run_atomic(_op)
    current_app.logger.info("Certification %s revoked for product %s by %s", cert_type, product_id, caller)
    return cert


def is_certification_valid(product_id: int, cert_type: str) -> bool:
    """False (never an error) when absent, revoked or expired."""
    cert = db.session.get(Certification, (product_id, cert_type))
    if cert is None:
        return False
    return cert.status == CERT_STATUS_VALID and cert.expires_at > current_tick()


def get_certification(product_id: int, cert_type: str) -> Certification:
    cert = db.session.get(Certification, (product_id, cert_type))
    if not cert:
        raise NotFoundError("Certification", f"{product_id}/{cert_type}")
    return cert


def list_certifications(product_id: int) -> list[Certification]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product", product_id)
    return (
        db.session.query(Certification)
        .filter_by(product_id=product_id)
        .order_by(Certification.cert_type.asc())
        .all()
    )
