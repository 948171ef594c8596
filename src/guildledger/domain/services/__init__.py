"""Domain services for GuildLedger.

Services contain the business logic for shared accounts: permission
evaluation and account/membership management.
"""

from guildledger.domain.services.shared_account_permission_service import (
    SharedAccountPermissionService,
)
from guildledger.domain.services.shared_account_service import (
    SharedAccountDetail,
    SharedAccountService,
    SharedAccountSummary,
    merge_permissions,
)

__all__ = [
    "SharedAccountDetail",
    "SharedAccountPermissionService",
    "SharedAccountService",
    "SharedAccountSummary",
    "merge_permissions",
]
