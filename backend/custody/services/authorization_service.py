# Overview: Service-layer operations for verifier authorization; encapsulates business logic and database work.

"""
Verifier Authorization Registry

WHY: An organization (any identity acting for itself) delegates authority to
verifier identities, which may then record checkpoints, update shipping
details and issue certifications on the organization's behalf.

RULES:
- Records are keyed by (organization, verifier); the caller is always the
  organization, so nobody can authorize verifiers for someone else.
- Re-authorizing overwrites the record and re-activates it.
- Deauthorizing only flips is_active; the record stays for audit.
- Lookups fail closed: unknown or inactive pairs are simply "not authorized".
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import VerifierAuthorization
from ..time_utils import current_tick
from ..validation import require_identity, require_text
from .concurrency import lock_for_update, run_atomic


def authorize_verifier(*, caller: str, verifier: str, name: str, role: str) -> VerifierAuthorization:
    """
    Upsert an active authorization for (caller, verifier).

    Always succeeds for a well-formed request; repeating it is harmless.
    """
    organization = require_identity(caller, "caller")
    verifier = require_identity(verifier, "verifier")
    name = require_text(name, "name")
    role = require_text(role, "role", max_length=64)

    def _op():
        record = lock_for_update(
            db.session.query(VerifierAuthorization).filter_by(organization=organization, verifier=verifier)
        ).first()

        if record is None:
            record = VerifierAuthorization(organization=organization, verifier=verifier)
            db.session.add(record)

        record.verifier_name = name
        record.role = role
        record.authorized_at = current_tick()
        record.authorized_by = organization
        record.is_active = True
        record.deauthorized_at = None

        db.session.flush()
        return record

    record = run_atomic(_op)
    current_app.logger.info("Verifier %s authorized for %s as %s", verifier, organization, role)
    return record


def deauthorize_verifier(*, caller: str, verifier: str) -> VerifierAuthorization:
    """
    Deactivate an existing authorization of the caller's organization.

    Raises:
        NotFoundError: No record exists for (caller, verifier)
    """
    organization = require_identity(caller, "caller")
    verifier = require_identity(verifier, "verifier")

    def _op():
        record = lock_for_update(
            db.session.query(VerifierAuthorization).filter_by(organization=organization, verifier=verifier)
        ).first()
        if not record:
            raise NotFoundError("Authorization", f"{organization}/{verifier}")

        record.is_active = False
        record.deauthorized_at = current_tick()
        db.session.flush()
        return record

    record = run_atomic(_op)
    current_app.logger.info("Verifier %s deauthorized for %s", verifier, organization)
    return record


def is_verifier_authorized(organization: str, verifier: str) -> bool:
    """Pure lookup; never raises for unknown pairs."""
    if not organization or not verifier:
        return False
    record = db.session.get(VerifierAuthorization, (organization, verifier))
    return bool(record and record.is_active)


def can_act_for(caller: str, organization: str) -> bool:
    """True if caller is the organization itself or one of its active verifiers."""
    return caller == organization or is_verifier_authorized(organization, caller)


def get_authorization(organization: str, verifier: str) -> VerifierAuthorization:
    record = db.session.get(VerifierAuthorization, (organization, verifier))
    if not record:
        raise NotFoundError("Authorization", f"{organization}/{verifier}")
    return record


def list_verifiers(organization: str, *, include_inactive: bool = False) -> list[VerifierAuthorization]:
    query = db.session.query(VerifierAuthorization).filter_by(organization=organization)
    if not include_inactive:
        query = query.filter(VerifierAuthorization.is_active == True)  # noqa: E712
    return query.order_by(VerifierAuthorization.authorized_at.asc(), VerifierAuthorization.verifier.asc()).all()
