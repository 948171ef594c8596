"""GuildLedger - shared game account access control.

Lets several players share a game account, with per-member read, write
and delete permissions and owner-managed membership.
"""

__version__ = "0.1.0"
