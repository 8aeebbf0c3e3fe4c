from __future__ import annotations

from ..extensions import db


SEQUENCE_PRODUCT = "PRODUCT"
SEQUENCE_CHECKPOINT = "CHECKPOINT"
SEQUENCE_TRANSFER = "TRANSFER"

# scope_id for the single global product sequence
GLOBAL_SCOPE = 0


class IdSequence(db.Model):
    """
    Atomic id allocators.

    WHY: Checkpoint and transfer ids are gapless per product, and product ids
    are gapless globally. next_value is the id the next allocation returns.

    (PRODUCT, 0) is global; (CHECKPOINT, product_id) and
    (TRANSFER, product_id) are per product.
    """
    __tablename__ = "id_sequences"
    __table_args__ = (
        db.UniqueConstraint("kind", "scope_id", name="uq_id_sequences_kind_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False)
    scope_id = db.Column(db.Integer, nullable=False)
    next_value = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "scope_id": self.scope_id,
            "next_value": self.next_value,
        }
