from __future__ import annotations

from ..extensions import db


CERT_STATUS_VALID = "VALID"
CERT_STATUS_REVOKED = "REVOKED"


class VerifierAuthorization(db.Model):
    """
    Delegation from an organization identity to a verifier identity.

    Re-authorizing overwrites the record. Revocation only flips is_active,
    so the row stays for audit.
    """
    __tablename__ = "verifier_authorizations"

    organization = db.Column(db.String(128), primary_key=True)
    verifier = db.Column(db.String(128), primary_key=True)

    verifier_name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(64), nullable=False)

    authorized_at = db.Column(db.Integer, nullable=False)
    authorized_by = db.Column(db.String(128), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deauthorized_at = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "organization": self.organization,
            "verifier": self.verifier,
            "verifier_name": self.verifier_name,
            "role": self.role,
            "authorized_at": self.authorized_at,
            "authorized_by": self.authorized_by,
            "is_active": self.is_active,
            "deauthorized_at": self.deauthorized_at,
        }


class Certification(db.Model):
    """
    Time-bounded compliance attestation for one (product, cert_type).

    EXPIRY: never stored. A certification is valid while status is VALID and
    expires_at is strictly greater than the current ledger tick.

    Re-issuing the same cert_type replaces the whole row, including any
    previous revocation.
    """
    __tablename__ = "certifications"

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True, autoincrement=False)
    cert_type = db.Column(db.String(64), primary_key=True)

    issuer = db.Column(db.String(128), nullable=False)
    issued_at = db.Column(db.Integer, nullable=False)
    expires_at = db.Column(db.Integer, nullable=False)

    cert_hash = db.Column(db.String(64), nullable=False)
    uri = db.Column(db.String(1024), nullable=True)

    # VALID, REVOKED
    status = db.Column(db.String(16), nullable=False, default=CERT_STATUS_VALID)

    product = db.relationship("Product", backref=db.backref("certifications", lazy=True))

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "cert_type": self.cert_type,
            "issuer": self.issuer,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
            "cert_hash": self.cert_hash,
            "uri": self.uri,
            "status": self.status,
        }
