"""Initial custody ledger schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=255), nullable=False),
        sa.Column("origin_location", sa.String(length=255), nullable=False),
        sa.Column("lot_number", sa.String(length=255), nullable=False),
        sa.Column("metadata_uri", sa.String(length=1024), nullable=True),
        sa.Column("manufacturer", sa.String(length=128), nullable=False),
        sa.Column("current_custodian", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("destination", sa.String(length=255), nullable=True),
        sa.Column("expected_arrival", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_manufacturer", "products", ["manufacturer"])
    op.create_index("ix_products_current_custodian", "products", ["current_custodian"])
    op.create_index("ix_products_status", "products", ["status"])
    op.create_index("ix_products_manufacturer_lot", "products", ["manufacturer", "lot_number"])

    op.create_table(
        "checkpoints",
        sa.Column("product_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("checkpoint_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("recorded_at", sa.Integer(), nullable=False),
        sa.Column("custodian", sa.String(length=128), nullable=False),
        sa.Column("verifier", sa.String(length=128), nullable=False),
        sa.Column("checkpoint_type", sa.String(length=64), nullable=False),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("humidity", sa.Float(), nullable=True),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("attestation_hash", sa.String(length=64), nullable=False),
        sa.Column("prev_hash", sa.String(length=64), nullable=False),
        sa.Column("entry_hash", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("product_id", "checkpoint_id"),
    )
    op.create_index("ix_checkpoints_verifier", "checkpoints", ["verifier"])

    op.create_table(
        "verifier_authorizations",
        sa.Column("organization", sa.String(length=128), nullable=False),
        sa.Column("verifier", sa.String(length=128), nullable=False),
        sa.Column("verifier_name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=64), nullable=False),
        sa.Column("authorized_at", sa.Integer(), nullable=False),
        sa.Column("authorized_by", sa.String(length=128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("deauthorized_at", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("organization", "verifier"),
    )

    op.create_table(
        "custody_transfers",
        sa.Column("product_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("transfer_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("initiator", sa.String(length=128), nullable=False),
        sa.Column("recipient", sa.String(length=128), nullable=False),
        sa.Column("initiated_at", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("conditions", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("product_id", "transfer_id"),
    )
    op.create_index("ix_custody_transfers_status", "custody_transfers", ["status"])
    op.create_index("ix_custody_transfers_recipient_status", "custody_transfers", ["recipient", "status"])

    op.create_table(
        "certifications",
        sa.Column("product_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("cert_type", sa.String(length=64), nullable=False),
        sa.Column("issuer", sa.String(length=128), nullable=False),
        sa.Column("issued_at", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.Integer(), nullable=False),
        sa.Column("cert_hash", sa.String(length=64), nullable=False),
        sa.Column("uri", sa.String(length=1024), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("product_id", "cert_type"),
    )

    op.create_table(
        "id_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("scope_id", sa.Integer(), nullable=False),
        sa.Column("next_value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("kind", "scope_id", name="uq_id_sequences_kind_scope"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("id_sequences")
    op.drop_table("certifications")
    op.drop_index("ix_custody_transfers_recipient_status", table_name="custody_transfers")
    op.drop_index("ix_custody_transfers_status", table_name="custody_transfers")
    op.drop_table("custody_transfers")
    op.drop_table("verifier_authorizations")
    op.drop_index("ix_checkpoints_verifier", table_name="checkpoints")
    op.drop_table("checkpoints")
    op.drop_index("ix_products_manufacturer_lot", table_name="products")
    op.drop_index("ix_products_status", table_name="products")
    op.drop_index("ix_products_current_custodian", table_name="products")
    op.drop_index("ix_products_manufacturer", table_name="products")
    op.drop_table("products")
