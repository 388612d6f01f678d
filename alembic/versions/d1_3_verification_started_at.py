"""Add customdomains.verification_started_at (D1-3)

Stamped whenever a custom domain gets a new verification token. Background
polling for that token stops DOMAIN_RECHECK_MAX_ATTEMPTS intervals later.
Existing rows are backfilled from created_at.

Revision ID: d1_3_verification_started_at
"""
from alembic import op
import sqlalchemy as sa

revision = "d1_3_verification_started_at"
down_revision = "d1_2_fold_domain_mappings"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "customdomains",
        sa.Column("verification_started_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.execute(
        "UPDATE customdomains SET verification_started_at = created_at "
        "WHERE domain_type = 'custom' AND verification_status <> 'verified'"
    )


def downgrade() -> None:
    op.drop_column("customdomains", "verification_started_at")
