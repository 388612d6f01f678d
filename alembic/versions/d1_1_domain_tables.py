"""Add users, linkpages and customdomains tables (D1-1)

Revision ID: d1_1_domain_tables
"""
from alembic import op
import sqlalchemy as sa

revision = "d1_1_domain_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "linkpages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_linkpages_id", "linkpages", ["id"])
    op.create_index("ix_linkpages_user_id", "linkpages", ["user_id"])
    op.create_index("ix_linkpages_slug", "linkpages", ["slug"], unique=True)

    op.create_table(
        "customdomains",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("link_page_id", sa.Uuid(), sa.ForeignKey("linkpages.id", ondelete="CASCADE"), nullable=True),
        sa.Column("domain_type", sa.String(16), nullable=False, server_default="custom"),
        sa.Column("hostname", sa.String(253), nullable=False),
        sa.Column("verification_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("verification_token", sa.String(64), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_customdomains_id", "customdomains", ["id"])
    op.create_index("ix_customdomains_user_id", "customdomains", ["user_id"])
    op.create_index("ix_customdomains_link_page_id", "customdomains", ["link_page_id"])
    op.create_index("ix_customdomains_hostname", "customdomains", ["hostname"], unique=True)
    # One account-level domain per user
    op.create_index(
        "uq_customdomains_account_user",
        "customdomains",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("link_page_id IS NULL"),
    )
    # Sweep query: pending custom domains by last check
    op.create_index(
        "ix_customdomains_status_checked",
        "customdomains",
        ["verification_status", "last_checked_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_customdomains_status_checked", table_name="customdomains")
    op.drop_index("uq_customdomains_account_user", table_name="customdomains")
    op.drop_index("ix_customdomains_hostname", table_name="customdomains")
    op.drop_index("ix_customdomains_link_page_id", table_name="customdomains")
    op.drop_index("ix_customdomains_user_id", table_name="customdomains")
    op.drop_index("ix_customdomains_id", table_name="customdomains")
    op.drop_table("customdomains")
    op.drop_index("ix_linkpages_slug", table_name="linkpages")
    op.drop_index("ix_linkpages_user_id", table_name="linkpages")
    op.drop_index("ix_linkpages_id", table_name="linkpages")
    op.drop_table("linkpages")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
