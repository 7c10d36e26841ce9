"""Matching engine commands."""

import click
from reconciler.cli.error_handling import handle_domain_error
from reconciler.domain.errors import DomainError, StorageError
from reconciler.domain.matching import MatchingEngine


@click.group()
def match_group():
    """Run reconciliation rules."""
    pass


@match_group.command("run")
@click.option(
    "--include-confirmed",
    is_flag=True,
    help="Scan every transaction, not only unreconciled ones",
)
@click.pass_context
def run_rules(ctx, include_confirmed: bool):
    """Apply active rules and queue suggestions for approval.

    Each transaction gets at most one suggestion per run: the first active
    rule, in priority order, that matches it.
    """
    engine = MatchingEngine(ctx.obj["db"])
    try:
        result = engine.run(ctx.obj["owner"], include_confirmed=include_confirmed)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)

    click.echo("Rule run complete:")
    click.echo(f"  Processed: {result.processed}")
    click.echo(f"  Matched: {result.matched}")
    if result.already_reconciled:
        click.echo(f"  Already reconciled: {result.already_reconciled}")


def register_commands(cli):
    """Register match commands with main CLI."""
    cli.add_command(match_group, name="match")
