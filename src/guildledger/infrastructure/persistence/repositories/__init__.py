"""Persistence repositories for database operations."""

from guildledger.infrastructure.persistence.repositories.shared_account_repository import (
    SharedAccountRepository,
)
from guildledger.infrastructure.persistence.repositories.user_account_relation_repository import (
    UserAccountRelationRepository,
)
from guildledger.infrastructure.persistence.repositories.user_repository import (
    UserRepository,
)

__all__ = [
    "SharedAccountRepository",
    "UserAccountRelationRepository",
    "UserRepository",
]
