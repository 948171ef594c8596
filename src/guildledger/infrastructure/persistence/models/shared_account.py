"""SQLAlchemy model for the shared_accounts table.

A shared account is one game account collaboratively managed by a group of
users. It has no owner column: ownership lives entirely in the
user_account_relations rows that point at it.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guildledger.infrastructure.persistence.database import Base


class SharedAccountModel(Base):
    """SQLAlchemy model for the shared_accounts table.

    Attributes:
        account_name: Primary key chosen by the creator (globally unique).
        display_name: Human-readable label.
        server_name: Game server the account lives on.
        is_active: Soft-disable flag, separate from deletion.
        created_at: Timestamp when the account was created.
        updated_at: Timestamp when the account was last updated.
    """

    __tablename__ = "shared_accounts"

    account_name: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        comment="Account name, natural primary key",
    )
    display_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Display name shown in the UI",
    )
    server_name: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Game server name",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        comment="Whether the account is active",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    relations: Mapped[list["UserAccountRelationModel"]] = relationship(  # noqa: F821
        "UserAccountRelationModel",
        back_populates="shared_account",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="UserAccountRelationModel.joined_at",
    )

    def __repr__(self) -> str:
        return f"<SharedAccount(account_name={self.account_name}, is_active={self.is_active})>"
