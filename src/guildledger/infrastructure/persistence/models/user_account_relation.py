"""SQLAlchemy model for the user_account_relations table.

Implements the membership of a user in a shared account, with its relation
type and permission flags.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guildledger.domain.entities.permission import PermissionConfig, RelationType
from guildledger.infrastructure.persistence.database import Base


class UserAccountRelationModel(Base):
    """SQLAlchemy model for the user_account_relations table.

    Attributes:
        id: Primary key (UUID string).
        user_id: Foreign key to users table.
        account_name: Foreign key to shared_accounts table.
        relation_type: 'owner' or 'contributor'.
        can_read: Read permission flag.
        can_write: Write permission flag.
        can_delete: Delete permission flag.
        joined_at: Timestamp when the user joined the account.
    """

    __tablename__ = "user_account_relations"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment="Relation ID (UUID)",
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Foreign key to users table",
    )
    account_name: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("shared_accounts.account_name", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Foreign key to shared_accounts table",
    )
    relation_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RelationType.CONTRIBUTOR.value,
        comment="Relation type: owner or contributor",
    )
    can_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_write: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_delete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    user: Mapped["UserModel"] = relationship(  # noqa: F821
        "UserModel",
        back_populates="account_relations",
    )
    shared_account: Mapped["SharedAccountModel"] = relationship(  # noqa: F821
        "SharedAccountModel",
        back_populates="relations",
    )

    __table_args__ = (
        # A user has at most one relation per shared account
        UniqueConstraint("user_id", "account_name", name="uq_user_account_relations_user_account"),
        CheckConstraint(
            "relation_type IN ('owner', 'contributor')",
            name="ck_user_account_relations_type",
        ),
    )

    @property
    def type(self) -> RelationType:
        """Relation type as an enum."""
        return RelationType(self.relation_type)

    @property
    def is_owner(self) -> bool:
        return self.relation_type == RelationType.OWNER.value

    @property
    def permissions(self) -> PermissionConfig:
        """Stored permission flags."""
        return PermissionConfig(
            read=bool(self.can_read),
            write=bool(self.can_write),
            delete=bool(self.can_delete),
        )

    @permissions.setter
    def permissions(self, value: PermissionConfig) -> None:
        self.can_read = value.read
        self.can_write = value.write
        self.can_delete = value.delete

    @property
    def username(self) -> str | None:
        """Username of the related user.

        Note: This requires the 'user' relationship to be loaded.
        """
        if "user" in self.__dict__ and self.user is not None:
            return self.user.username
        return None

    def __repr__(self) -> str:
        return (
            f"<UserAccountRelation(user_id={self.user_id}, "
            f"account_name={self.account_name}, relation_type={self.relation_type})>"
        )
