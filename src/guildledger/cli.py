"""Command-line interface for GuildLedger.

This module provides the CLI commands for running and managing
the GuildLedger application.
"""

import sys
from typing import NoReturn

import click

from guildledger.core.config import get_settings
from guildledger.core.logging import configure_logging, get_logger


@click.group()
@click.version_option(version="0.1.0", prog_name="GuildLedger")
def cli() -> None:
    """GuildLedger - shared game account access control.

    Settings are loaded from GUILDLEDGER_* environment variables and .env.
    """


@cli.command()
@click.option(
    "--host",
    type=str,
    default=None,
    help="Host to bind to (overrides config)",
)
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to bind to (overrides config)",
)
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Number of worker processes (overrides config)",
)
@click.option(
    "--reload",
    is_flag=True,
    default=False,
    help="Enable auto-reload for development",
)
def serve(host: str | None, port: int | None, workers: int | None, reload: bool) -> None:
    """Start the GuildLedger server."""
    import uvicorn

    settings = get_settings()

    bind_host = host or settings.host
    bind_port = port or settings.port
    bind_workers = workers or settings.workers

    configure_logging(settings)

    logger = get_logger(__name__)
    logger.info(
        "Starting GuildLedger server",
        host=bind_host,
        port=bind_port,
        workers=bind_workers,
        reload=reload,
        environment=settings.environment,
    )

    uvicorn.run(
        "guildledger.infrastructure.api.app:app",
        host=bind_host,
        port=bind_port,
        workers=1 if reload else bind_workers,
        reload=reload,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
def init_db(force: bool) -> None:
    """Initialize the database.

    Creates all database tables. Use this only in development.
    In production, use migrations instead.
    """
    import asyncio

    from guildledger.infrastructure.persistence.database import (
        get_db_manager,
        init_database,
    )

    settings = get_settings()
    configure_logging(settings)

    if settings.is_production and not force:
        click.echo(
            "ERROR: Running in production mode. Use migrations instead of init-db.",
            err=True,
        )
        raise SystemExit(1)

    if not force:
        click.confirm(
            "This will create all database tables. Continue?",
            abort=True,
            default=False,
        )

    async def initialize():
        db = get_db_manager()
        try:
            await init_database()
            if not settings.is_development:
                await db.create_tables()
            click.echo("Database initialized successfully.")
        finally:
            await db.disconnect()

    asyncio.run(initialize())


@cli.command()
@click.argument("username")
@click.option(
    "--user-id",
    type=str,
    default=None,
    help="User ID to assign (a UUID is generated if not provided)",
)
def create_user(username: str, user_id: str | None) -> None:
    """Register a user and print an access token for it.

    Identities normally come from the upstream identity provider; this
    command exists for development and testing.
    """
    import asyncio
    import uuid

    from guildledger.infrastructure.auth import jwt_service
    from guildledger.infrastructure.persistence.database import get_db_manager
    from guildledger.infrastructure.persistence.models import UserModel
    from guildledger.infrastructure.persistence.repositories import UserRepository

    settings = get_settings()
    configure_logging(settings)
    logger = get_logger(__name__)

    async def create() -> str:
        db = get_db_manager()
        try:
            async with db.session() as session:
                user_repo = UserRepository(session)
                if await user_repo.get_by_username(username) is not None:
                    click.echo(f'Error: user "{username}" already exists', err=True)
                    raise SystemExit(1)

                user = UserModel(id=user_id or str(uuid.uuid4()), username=username)
                await user_repo.create(user)
                await session.commit()
                return user.id
        finally:
            await db.disconnect()

    new_user_id = asyncio.run(create())
    token = jwt_service.create_access_token(user_id=new_user_id, username=username)

    logger.info("User created via CLI", user_id=new_user_id, username=username)
    click.echo(
        f"\nUser created successfully!\n"
        f"  User ID:  {new_user_id}\n"
        f"  Username: {username}\n"
        f"\nAccess token:\n{token}\n"
    )


@cli.command()
def info() -> None:
    """Display GuildLedger configuration and system information."""
    settings = get_settings()

    click.echo(f"""
GuildLedger v{settings.app_version}
{'=' * 40}

Configuration:
  Environment:  {settings.environment}
  Debug:        {settings.debug}
  API Prefix:   {settings.api_prefix}

Server:
  Host:         {settings.host}
  Port:         {settings.port}
  Workers:      {settings.workers}

Database:
  URL:          {settings.database_url}
  Pool Size:    {settings.db_pool_size}
  Echo:         {settings.db_echo}

Security:
  Token Expire: {settings.access_token_expire_minutes} minutes

Pagination:
  Default Size: {settings.default_page_size}
  Max Size:     {settings.max_page_size}

Logging:
  Level:        {settings.log_level}
  Format:       {settings.log_format}
""")


def main() -> NoReturn:
    """Main entry point for the CLI.

    This function is called when the `guildledger` command is run
    or when using `python -m guildledger`.
    """
    cli()


def serve_main() -> NoReturn:
    """Entry point that runs the server when no command is given."""
    sys.argv[0] = "guildledger"
    if len(sys.argv) == 1:
        sys.argv.append("serve")
    main()


if __name__ == "__main__":
    main()
