"""Pending match review commands."""

import click
from reconciler.cli.error_handling import handle_domain_error
from reconciler.domain.approval import ApprovalQueue, group_by_rule
from reconciler.domain.entities import BulkResult, PendingMatchView
from reconciler.domain.errors import DomainError, StorageError


def _echo_match(view: PendingMatchView) -> None:
    match = view.match
    txn = view.transaction
    category = view.suggested_category.name if view.suggested_category else "(no category)"
    flags = []
    if view.was_already_reconciled:
        flags.append("already reconciled")
    if view.is_stale:
        flags.append("stale")
    flag_str = f" [{', '.join(flags)}]" if flags else ""
    if txn is None:
        click.echo(f"{match.id:<6} transaction {match.transaction_id} -> {category}{flag_str}")
        return
    amount_str = f"£{txn.amount:,.2f}"
    party = (txn.raw_party or txn.description or "")[:30]
    click.echo(
        f"{match.id:<6} {str(txn.date):<12} {amount_str:<12} {party:<30} -> {category}{flag_str}"
    )


def _echo_bulk(result: BulkResult, verb: str) -> None:
    for match_id, message in result.errors.items():
        click.echo(f"✗ Match {match_id}: {message}")
    click.echo(f"\nResults: {result.succeeded} {verb}, {result.failed} failed")


@click.group()
def pending_group():
    """Review suggested categorizations."""
    pass


@pending_group.command("list")
@click.option("--group", "grouped", is_flag=True, help="Group matches by rule")
@click.option("--hide-reconciled", is_flag=True, help="Hide matches for already reconciled transactions")
@click.option("--rule", "rule_id", type=int, help="Show every match produced by this rule")
@click.pass_context
def list_pending(ctx, grouped: bool, hide_reconciled: bool, rule_id: int | None):
    """List matches awaiting approval."""
    queue = ApprovalQueue(ctx.obj["db"])
    owner = ctx.obj["owner"]
    try:
        if rule_id is not None:
            views = queue.matches_by_rule(owner, rule_id)
        else:
            views = queue.list(owner)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)

    if not grouped and hide_reconciled:
        views = [view for view in views if not view.was_already_reconciled]
    if not views:
        click.echo("No pending matches.")
        return

    if grouped:
        for group in group_by_rule(views, hide_reconciled=hide_reconciled):
            click.echo(f"\n{group.rule_name} ({len(group.matches)})")
            if group.rule_description:
                click.echo(f"  {group.rule_description}")
            click.echo("-" * 90)
            for view in group.matches:
                _echo_match(view)
        return

    click.echo(f"\nFound {len(views)} match(es):")
    click.echo("-" * 90)
    for view in views:
        _echo_match(view)


@pending_group.command("count")
@click.pass_context
def count_pending(ctx):
    """Show the number of matches awaiting approval."""
    queue = ApprovalQueue(ctx.obj["db"])
    try:
        count = queue.pending_count(ctx.obj["owner"])
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"{count} pending match(es)")


@pending_group.command("approve")
@click.argument("match_ids", nargs=-1, type=int, required=True)
@click.option("--category", "category_id", type=int, help="Override the suggested category")
@click.option("--notes", help="Override the suggested notes")
@click.pass_context
def approve_matches(ctx, match_ids: tuple[int, ...], category_id: int | None, notes: str | None):
    """Approve one or more matches.

    Examples:
        reconciler pending approve 4
        reconciler pending approve 4 5 6
        reconciler pending approve 4 --category 12 --notes "Checked"
    """
    queue = ApprovalQueue(ctx.obj["db"])
    owner = ctx.obj["owner"]
    if notes is not None and category_id is None:
        click.echo("Error: --notes requires --category", err=True)
        ctx.exit(1)
    edited = category_id is not None

    if len(match_ids) > 1:
        if edited:
            click.echo("Error: --category applies to a single match", err=True)
            ctx.exit(1)
        click.echo(f"Approving {len(match_ids)} matches...")
        try:
            result = queue.bulk_approve(owner, match_ids)
        except DomainError as e:
            handle_domain_error(ctx, e)
        _echo_bulk(result, "approved")
        if not result.success:
            ctx.exit(1)
        return

    match_id = match_ids[0]
    try:
        if edited:
            queue.approve_with_edit(owner, match_id, category_id, notes)
        else:
            queue.approve(owner, match_id)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"Approved match {match_id}")


@pending_group.command("reject")
@click.argument("match_ids", nargs=-1, type=int, required=True)
@click.pass_context
def reject_matches(ctx, match_ids: tuple[int, ...]):
    """Reject one or more matches, returning their transactions to the pool."""
    queue = ApprovalQueue(ctx.obj["db"])
    owner = ctx.obj["owner"]

    if len(match_ids) > 1:
        click.echo(f"Rejecting {len(match_ids)} matches...")
        try:
            result = queue.bulk_reject(owner, match_ids)
        except DomainError as e:
            handle_domain_error(ctx, e)
        _echo_bulk(result, "rejected")
        if not result.success:
            ctx.exit(1)
        return

    try:
        queue.reject(owner, match_ids[0])
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"Rejected match {match_ids[0]}")


@pending_group.command("suggest")
@click.argument("transaction_id", type=int)
@click.option("--category", "category_id", type=int, required=True, help="Category ID to suggest")
@click.option("--staff", "staff_id", type=int, help="Staff ID to suggest")
@click.option("--vendor", "vendor_id", type=int, help="Vendor ID to suggest")
@click.option("--notes", help="Notes to suggest")
@click.pass_context
def suggest_match(
    ctx, transaction_id: int, category_id: int, staff_id: int | None, vendor_id: int | None, notes: str | None
):
    """Queue a manual categorization for approval."""
    queue = ApprovalQueue(ctx.obj["db"])
    try:
        match_id = queue.suggest_manual(
            ctx.obj["owner"],
            transaction_id,
            category_id,
            staff_id=staff_id,
            vendor_id=vendor_id,
            notes=notes,
        )
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created manual match {match_id} for transaction {transaction_id}")


def register_commands(cli):
    """Register pending match commands with main CLI."""
    cli.add_command(pending_group, name="pending")
