"""Duplicate transaction commands."""

import click
from reconciler.cli.error_handling import handle_domain_error
from reconciler.domain.duplicates import DuplicateDetector
from reconciler.domain.errors import DomainError, StorageError


@click.group()
def duplicates_group():
    """Find and remove duplicate transactions."""
    pass


@duplicates_group.command("check")
@click.pass_context
def check_duplicates(ctx):
    """List groups of duplicated manual transactions."""
    detector = DuplicateDetector(ctx.obj["db"])
    try:
        result = detector.check(ctx.obj["owner"])
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)

    if not result.duplicate_groups:
        click.echo("No duplicates found.")
        return

    click.echo(
        f"\nFound {result.total_groups} duplicate group(s), "
        f"{result.total_duplicate_rows} removable transaction(s):"
    )
    for group in result.duplicate_groups:
        click.echo("-" * 90)
        click.echo(
            f"{group.transaction_date}  £{group.amount:,.2f}  {group.raw_party or ''}  "
            f"{group.description or ''}  [{group.source}] x{group.count}"
        )
        click.echo(f"  Keep: {group.keep_id}")
        click.echo(f"  Delete: {', '.join(str(i) for i in group.delete_ids)}")


@duplicates_group.command("cleanup")
@click.argument("transaction_ids", nargs=-1, type=int)
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def cleanup_duplicates(ctx, transaction_ids: tuple[int, ...], yes: bool):
    """Delete duplicates, keeping the most enriched copy of each.

    With no TRANSACTION_IDS every removable duplicate from a fresh scan is
    deleted. Transactions linked to a payable are never deleted.

    Examples:
        reconciler duplicates cleanup
        reconciler duplicates cleanup 12 15
    """
    detector = DuplicateDetector(ctx.obj["db"])
    target = "the given transactions" if transaction_ids else "all removable duplicates"
    if not yes and not click.confirm(f"Delete {target}?"):
        click.echo("Cleanup cancelled.")
        return

    try:
        result = detector.cleanup(ctx.obj["owner"], ids=list(transaction_ids) or None)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Deleted {result.deleted_count} transaction(s)")
    if result.skipped_linked_ids:
        skipped = ", ".join(str(i) for i in result.skipped_linked_ids)
        click.echo(f"Skipped (linked to payables): {skipped}")


@duplicates_group.command("integrity")
@click.pass_context
def integrity_check(ctx):
    """Report external IDs and import hashes shared by several transactions."""
    detector = DuplicateDetector(ctx.obj["db"])
    try:
        external = detector.find_external_id_duplicates(ctx.obj["owner"])
        hashes = detector.find_import_hash_duplicates(ctx.obj["owner"])
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Duplicate external IDs: {len(external)}")
    for dup in external:
        click.echo(f"  {dup.key}: {', '.join(str(i) for i in dup.ids)}")
    click.echo(f"Duplicate import hashes: {len(hashes)}")
    for dup in hashes:
        click.echo(f"  {dup.key}: {', '.join(str(i) for i in dup.ids)}")
    if external or hashes:
        ctx.exit(1)


def register_commands(cli):
    """Register duplicate commands with main CLI."""
    cli.add_command(duplicates_group, name="duplicates")
