"""create_shared_account_tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-16 09:12:40.518233

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create users, shared_accounts and user_account_relations tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False, comment="User ID (UUID)"),
        sa.Column("username", sa.String(length=50), nullable=False, comment="Username"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)

    op.create_table(
        "shared_accounts",
        sa.Column(
            "account_name",
            sa.String(length=50),
            nullable=False,
            comment="Unique account name",
        ),
        sa.Column(
            "display_name",
            sa.String(length=100),
            nullable=True,
            comment="Display name shown in the UI",
        ),
        sa.Column("server_name", sa.String(length=50), nullable=True, comment="Game server name"),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            comment="Whether the account is active",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("account_name"),
    )
    op.create_index(
        op.f("ix_shared_accounts_is_active"), "shared_accounts", ["is_active"], unique=False
    )

    op.create_table(
        "user_account_relations",
        sa.Column("id", sa.String(length=36), nullable=False, comment="Relation ID (UUID)"),
        sa.Column(
            "user_id",
            sa.String(length=36),
            nullable=False,
            comment="Foreign key to users table",
        ),
        sa.Column(
            "account_name",
            sa.String(length=50),
            nullable=False,
            comment="Foreign key to shared_accounts table",
        ),
        sa.Column(
            "relation_type",
            sa.String(length=20),
            nullable=False,
            comment="Relation type: owner or contributor",
        ),
        sa.Column("can_read", sa.Boolean(), nullable=False),
        sa.Column("can_write", sa.Boolean(), nullable=False),
        sa.Column("can_delete", sa.Boolean(), nullable=False),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "relation_type IN ('owner', 'contributor')",
            name="ck_user_account_relations_type",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["account_name"], ["shared_accounts.account_name"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "account_name", name="uq_user_account_relations_user_account"
        ),
    )
    op.create_index(
        op.f("ix_user_account_relations_user_id"),
        "user_account_relations",
        ["user_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_user_account_relations_account_name"),
        "user_account_relations",
        ["account_name"],
        unique=False,
    )


def downgrade() -> None:
    """Drop shared account tables."""
    op.drop_index(
        op.f("ix_user_account_relations_account_name"), table_name="user_account_relations"
    )
    op.drop_index(op.f("ix_user_account_relations_user_id"), table_name="user_account_relations")
    op.drop_table("user_account_relations")
    op.drop_index(op.f("ix_shared_accounts_is_active"), table_name="shared_accounts")
    op.drop_table("shared_accounts")
    op.drop_index(op.f("ix_users_username"), table_name="users")
    op.drop_table("users")
