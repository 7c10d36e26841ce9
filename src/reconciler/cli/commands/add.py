"""Add transaction command."""

import click
from reconciler.domain.entities import TRANSACTION_SOURCES
from reconciler.domain.errors import DomainError, StorageError
from reconciler.domain.transaction import TransactionService
from reconciler.utils.date_parser import parse_date
from reconciler.utils.amount_parser import parse_amount


@click.command("add")
@click.option(
    "--date",
    required=True,
    help="Transaction date (YYYY-MM-DD or relative like 'today', 'yesterday')",
)
@click.option(
    "--amount", required=True, help="Signed amount (e.g., 1000.00 income or -75.50 expense)"
)
@click.option("--description", help="Bank reference / description")
@click.option("--party", help="Counterparty name as shown by the bank")
@click.option(
    "--source",
    type=click.Choice(TRANSACTION_SOURCES, case_sensitive=False),
    default="manual",
    help="Where the transaction came from (default: manual)",
)
@click.option("--external-id", help="Bank feed identity, unique per source")
@click.option("--import-hash", help="Re-import dedup key")
@click.option("--notes", help="Notes")
@click.pass_context
def add_transaction(
    ctx,
    date: str,
    amount: str,
    description: str | None,
    party: str | None,
    source: str,
    external_id: str | None,
    import_hash: str | None,
    notes: str | None,
):
    """Add a transaction manually.

    Examples:
        reconciler add --date 2024-01-15 --amount -75.00 --party "AMAZON EU SARL"
        reconciler add --date 2024-01-15 --amount 1000.00 --description "Membership fees"
    """
    db = ctx.obj["db"]
    owner = ctx.obj["owner"]
    service = TransactionService(db)

    # Parse date
    try:
        txn_date = parse_date(date)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    # Parse amount
    try:
        txn_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    try:
        transaction_id = service.create_transaction(
            owner,
            transaction_date=txn_date,
            amount=txn_amount,
            description=description,
            raw_party=party,
            source=source.lower(),
            external_id=external_id,
            import_hash=import_hash,
            notes=notes,
        )
    except (DomainError, StorageError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    kind = "expense" if txn_amount < 0 else "income"
    click.echo(f"Created transaction {transaction_id}")
    click.echo(f"  Date: {txn_date}")
    click.echo(f"  Amount: £{txn_amount:,.2f} ({kind})")
    if party:
        click.echo(f"  Party: {party}")
    if description:
        click.echo(f"  Description: {description}")


def register_commands(cli):
    """Register add command with main CLI."""
    cli.add_command(add_transaction)
