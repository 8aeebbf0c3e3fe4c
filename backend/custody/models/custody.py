from __future__ import annotations

from ..extensions import db


TRANSFER_STATUS_PENDING = "PENDING"
TRANSFER_STATUS_COMPLETED = "COMPLETED"
TRANSFER_STATUS_REJECTED = "REJECTED"
TRANSFER_STATUS_CANCELLED = "CANCELLED"

TRANSFER_STATUSES = {
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_REJECTED,
    TRANSFER_STATUS_CANCELLED,
}


class CustodyTransfer(db.Model):
    """
    Two-party custody handover.

    LIFECYCLE:
    1. PENDING: Initiated by the current custodian
    2. COMPLETED: Accepted by the recipient, who becomes custodian
    3. REJECTED: Declined by the recipient (conditions holds the reason)
    4. CANCELLED: Withdrawn by the initiator

    Only PENDING transfers change; every other status is final.
    """
    __tablename__ = "custody_transfers"
    __table_args__ = (
        db.Index("ix_custody_transfers_recipient_status", "recipient", "status"),
    )

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True, autoincrement=False)
    transfer_id = db.Column(db.Integer, primary_key=True, autoincrement=False)

    initiator = db.Column(db.String(128), nullable=False)
    recipient = db.Column(db.String(128), nullable=False)

    initiated_at = db.Column(db.Integer, nullable=False)
    completed_at = db.Column(db.Integer, nullable=True)

    # PENDING, COMPLETED, REJECTED, CANCELLED
    status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_PENDING, index=True)

    # Handover conditions; replaced by the rejection reason on reject
    conditions = db.Column(db.Text, nullable=True)

    product = db.relationship("Product", backref=db.backref("transfers", lazy=True, order_by="CustodyTransfer.transfer_id"))

    def __repr__(self) -> str:
        return f"<CustodyTransfer product={self.product_id} id={self.transfer_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "transfer_id": self.transfer_id,
            "initiator": self.initiator,
            "recipient": self.recipient,
            "initiated_at": self.initiated_at,
            "completed_at": self.completed_at,
            "status": self.status,
            "conditions": self.conditions,
        }
