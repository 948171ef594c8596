"""SQLAlchemy models for GuildLedger tables.

All models inherit from the Base class defined in database.py and are
automatically created on application startup in development mode.
"""

from guildledger.infrastructure.persistence.models.shared_account import SharedAccountModel
from guildledger.infrastructure.persistence.models.user import UserModel
from guildledger.infrastructure.persistence.models.user_account_relation import (
    UserAccountRelationModel,
)

__all__ = [
    "SharedAccountModel",
    "UserAccountRelationModel",
    "UserModel",
]
