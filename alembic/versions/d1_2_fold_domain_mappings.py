"""Fold legacy domain_mappings rows into customdomains (D1-2)

Per-page mappings used to live in their own ``domain_mappings`` table
(page_id, domain_type, hostname, verified, verification_token). They now
share ``customdomains`` with the account-level domain. Hostnames are
lower-cased on the way in; a hostname already present in customdomains is
kept and the legacy row is skipped.

Revision ID: d1_2_fold_domain_mappings
"""
from alembic import op
import sqlalchemy as sa

revision = "d1_2_fold_domain_mappings"
down_revision = "d1_1_domain_tables"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    if "domain_mappings" not in sa.inspect(bind).get_table_names():
        return

    op.execute(
        """
        INSERT INTO customdomains (
            id, user_id, link_page_id, domain_type, hostname,
            verification_status, verification_token, verified_at, created_at
        )
        SELECT
            dm.id,
            lp.user_id,
            dm.page_id,
            dm.domain_type,
            LOWER(dm.hostname),
            CASE WHEN dm.verified THEN 'verified' ELSE 'pending' END,
            dm.verification_token,
            CASE WHEN dm.verified THEN dm.created_at ELSE NULL END,
            dm.created_at
        FROM domain_mappings dm
        JOIN linkpages lp ON lp.id = dm.page_id
        WHERE NOT EXISTS (
            SELECT 1 FROM customdomains cd WHERE cd.hostname = LOWER(dm.hostname)
        )
        """
    )
    op.drop_table("domain_mappings")


def downgrade() -> None:
    op.create_table(
        "domain_mappings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("page_id", sa.Uuid(), sa.ForeignKey("linkpages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("domain_type", sa.String(16), nullable=False),
        sa.Column("hostname", sa.String(253), nullable=False, unique=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("verification_token", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.execute(
        """
        INSERT INTO domain_mappings (id, page_id, domain_type, hostname, verified, verification_token, created_at)
        SELECT id, link_page_id, domain_type, hostname,
               verification_status = 'verified', verification_token, created_at
        FROM customdomains
        WHERE link_page_id IS NOT NULL
        """
    )
    op.execute("DELETE FROM customdomains WHERE link_page_id IS NOT NULL")
