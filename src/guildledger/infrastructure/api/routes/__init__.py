"""API Routes for GuildLedger."""

from .shared_accounts_router import router as shared_accounts_router

__all__ = [
    "shared_accounts_router",
]
