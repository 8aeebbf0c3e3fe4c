from __future__ import annotations

from ..extensions import db


# Product lifecycle status values
PRODUCT_STATUS_CREATED = "CREATED"
PRODUCT_STATUS_IN_TRANSIT = "IN_TRANSIT"
PRODUCT_STATUS_DELIVERED = "DELIVERED"
PRODUCT_STATUS_SOLD = "SOLD"
PRODUCT_STATUS_RECALLED = "RECALLED"

PRODUCT_STATUSES = {
    PRODUCT_STATUS_CREATED,
    PRODUCT_STATUS_IN_TRANSIT,
    PRODUCT_STATUS_DELIVERED,
    PRODUCT_STATUS_SOLD,
    PRODUCT_STATUS_RECALLED,
}


class Product(db.Model):
    """
    A physical good tracked through its custody chain.

    IMMUTABLE AFTER CREATION: id, manufacturer, lot_number, created_at.
    status and current_custodian change only through the checkpoint,
    transfer and recall services.

    CONCURRENCY: every write that touches a product's records locks this row
    first, and version_id makes a lost race fail instead of overwriting.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_manufacturer_lot", "manufacturer", "lot_number"),
    )

    # Allocated from the global PRODUCT sequence, starting at 0
    id = db.Column(db.Integer, primary_key=True, autoincrement=False)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    category = db.Column(db.String(255), nullable=False)
    origin_location = db.Column(db.String(255), nullable=False)
    lot_number = db.Column(db.String(255), nullable=False)
    metadata_uri = db.Column(db.String(1024), nullable=True)

    manufacturer = db.Column(db.String(128), nullable=False, index=True)
    current_custodian = db.Column(db.String(128), nullable=False, index=True)

    # CREATED, IN_TRANSIT, DELIVERED, SOLD, RECALLED
    status = db.Column(db.String(16), nullable=False, default=PRODUCT_STATUS_CREATED, index=True)

    # Ledger clock values, not wall-clock datetimes
    created_at = db.Column(db.Integer, nullable=False)

    destination = db.Column(db.String(255), nullable=True)
    expected_arrival = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} lot={self.lot_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "origin_location": self.origin_location,
            "lot_number": self.lot_number,
            "metadata_uri": self.metadata_uri,
            "manufacturer": self.manufacturer,
            "current_custodian": self.current_custodian,
            "status": self.status,
            "created_at": self.created_at,
            "destination": self.destination,
            "expected_arrival": self.expected_arrival,
        }


class Checkpoint(db.Model):
    """
    One immutable waypoint in a product's ledger.

    checkpoint_id is a gapless per-product sequence starting at 0.
    Rows are never updated or deleted; prev_hash/entry_hash chain them.
    """
    __tablename__ = "checkpoints"

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True, autoincrement=False)
    checkpoint_id = db.Column(db.Integer, primary_key=True, autoincrement=False)

    location = db.Column(db.String(255), nullable=False)
    recorded_at = db.Column(db.Integer, nullable=False)

    # Snapshot of the product's custodian when the checkpoint was written
    custodian = db.Column(db.String(128), nullable=False)
    # Identity that wrote the checkpoint
    verifier = db.Column(db.String(128), nullable=False, index=True)

    # Free-form; "delivery" and "retail-sale" drive product status
    checkpoint_type = db.Column(db.String(64), nullable=False)

    temperature = db.Column(db.Float, nullable=True)
    humidity = db.Column(db.Float, nullable=True)
    observations = db.Column(db.Text, nullable=True)

    attestation_hash = db.Column(db.String(64), nullable=False)

    prev_hash = db.Column(db.String(64), nullable=False)
    entry_hash = db.Column(db.String(64), nullable=False)

    product = db.relationship("Product", backref=db.backref("checkpoints", lazy=True, order_by="Checkpoint.checkpoint_id"))

    def hashed_fields(self) -> dict:
        """Fields covered by entry_hash."""
        return {
            "product_id": self.product_id,
            "checkpoint_id": self.checkpoint_id,
            "location": self.location,
            "recorded_at": self.recorded_at,
            "custodian": self.custodian,
            "verifier": self.verifier,
            "checkpoint_type": self.checkpoint_type,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "observations": self.observations,
            "attestation_hash": self.attestation_hash,
        }

    def to_dict(self) -> dict:
        return {
            **self.hashed_fields(),
            "prev_hash": self.prev_hash,
            "entry_hash": self.entry_hash,
        }
