"""Main CLI entry point."""

import logging

import click
from reconciler.database.factories import create_database

# Import and register all commands at module level
from reconciler.cli.commands import (
    add,
    lookup,
    rule,
    match,
    pending,
    duplicates,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _setup_logging(level: str) -> None:
    """Configure root logging for a CLI invocation."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides RECONCILER_DB_PATH environment variable)",
    envvar="RECONCILER_DB_PATH",
)
@click.option(
    "--owner",
    help="Owner whose data is read and written (or set RECONCILER_OWNER)",
    envvar="RECONCILER_OWNER",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity (or set RECONCILER_LOG_LEVEL)",
    envvar="RECONCILER_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, owner: str | None, log_level: str):
    """Reconciler - transaction reconciliation rule engine.

    Define matching rules, run them over bank transactions, review the
    suggested categorizations and clean up duplicate imports.
    """
    ctx.ensure_object(dict)
    _setup_logging(log_level)
    ctx.obj["owner"] = owner

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
add.register_commands(cli)
lookup.register_commands(cli)
rule.register_commands(cli)
match.register_commands(cli)
pending.register_commands(cli)
duplicates.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
