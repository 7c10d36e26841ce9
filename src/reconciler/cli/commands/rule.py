"""Rule management commands."""

import click
from reconciler.cli.error_handling import handle_domain_error
from reconciler.domain.entities import MATCH_TYPES, TRANSACTION_TYPES, Condition, Rule, RulePreview
from reconciler.domain.errors import DomainError, StorageError
from reconciler.domain.rules import RuleService, build_rule
from reconciler.utils.amount_parser import parse_optional_amount

_CRITERIA_OPTIONS = [
    click.option("--description", help="Free-text description of the rule"),
    click.option("--priority", type=int, help="Evaluation order, lower runs first (default: 100)"),
    click.option(
        "--condition",
        "conditions",
        nargs=3,
        multiple=True,
        metavar="FIELD OPERATOR VALUE",
        help="Structured condition (repeatable). For 'between' give VALUE as LOW..HIGH",
    ),
    click.option("--vendor", "match_vendor_id", type=int, help="Vendor ID to match"),
    click.option("--staff", "match_staff_id", type=int, help="Staff ID to match"),
    click.option("--pattern", "match_description_pattern", help="Description pattern"),
    click.option("--party", "match_counter_party_pattern", help="Counterparty pattern"),
    click.option("--min", "match_amount_min", help="Minimum absolute amount"),
    click.option("--max", "match_amount_max", help="Maximum absolute amount"),
    click.option(
        "--txn-type",
        "match_transaction_type",
        type=click.Choice(TRANSACTION_TYPES, case_sensitive=False),
        help="Only match income or expense transactions",
    ),
    click.option("--category", "action_category_id", type=int, help="Category ID to suggest"),
    click.option("--set-staff", "action_staff_id", type=int, help="Staff ID to suggest"),
    click.option("--set-vendor", "action_vendor_id", type=int, help="Vendor ID to suggest"),
    click.option("--notes", "action_notes_template", help="Notes to suggest"),
]


def criteria_options(func):
    """Attach the shared rule definition options to a command."""
    for option in reversed(_CRITERIA_OPTIONS):
        func = option(func)
    return func


def parse_condition(field: str, operator: str, value: str) -> Condition:
    """Build a Condition from CLI arguments."""
    if operator == "between" and ".." in value:
        low, high = value.split("..", 1)
        return Condition(field=field, operator=operator, value=low.strip(), value2=high.strip())
    return Condition(field=field, operator=operator, value=value)


def _collect_criteria(ctx, options: dict) -> dict:
    """Drop unset options and convert amounts and conditions."""
    fields = {key: value for key, value in options.items() if value is not None}
    try:
        for amount_field in ("match_amount_min", "match_amount_max"):
            if amount_field in fields:
                fields[amount_field] = parse_optional_amount(fields[amount_field])
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)
    if fields.get("conditions"):
        fields["conditions"] = [parse_condition(*cond) for cond in fields["conditions"]]
    else:
        fields.pop("conditions", None)
    if "match_transaction_type" in fields:
        fields["match_transaction_type"] = fields["match_transaction_type"].lower()
    return fields


def _describe_criteria(rule: Rule) -> str:
    parts = []
    if rule.match_vendor_id is not None:
        parts.append(f"vendor={rule.match_vendor_id}")
    if rule.match_staff_id is not None:
        parts.append(f"staff={rule.match_staff_id}")
    if rule.match_description_pattern:
        parts.append(f"pattern='{rule.match_description_pattern}'")
    if rule.match_counter_party_pattern:
        parts.append(f"party='{rule.match_counter_party_pattern}'")
    if rule.match_amount_min is not None or rule.match_amount_max is not None:
        low = rule.match_amount_min if rule.match_amount_min is not None else "*"
        high = rule.match_amount_max if rule.match_amount_max is not None else "*"
        parts.append(f"amount={low}..{high}")
    if rule.match_transaction_type:
        parts.append(rule.match_transaction_type)
    for cond in rule.conditions:
        value = f"{cond.value}..{cond.value2}" if cond.value2 is not None else cond.value
        parts.append(f"{cond.field} {cond.operator} '{value}'")
    return ", ".join(parts) or "-"


def _echo_preview(preview: RulePreview) -> None:
    click.echo(f"Would match {preview.match_count} unreconciled transaction(s)")
    if not preview.sample_matches:
        return
    click.echo("-" * 90)
    click.echo(f"{'ID':<6} {'Date':<12} {'Amount':<12} {'Party':<25} {'Description':<30}")
    click.echo("-" * 90)
    for txn in preview.sample_matches:
        amount_str = f"£{txn.amount:,.2f}"
        click.echo(
            f"{txn.id:<6} {str(txn.date):<12} {amount_str:<12} "
            f"{(txn.raw_party or '')[:25]:<25} {(txn.description or '')[:30]:<30}"
        )
    if preview.match_count > len(preview.sample_matches):
        click.echo(f"... and {preview.match_count - len(preview.sample_matches)} more")


@click.group()
def rule_group():
    """Manage reconciliation rules."""
    pass


@rule_group.command("create")
@click.argument("name")
@click.option(
    "--type", "match_type", required=True, type=click.Choice(MATCH_TYPES), help="How the rule matches"
)
@criteria_options
@click.option("--no-approval", is_flag=True, help="Mark the rule as not requiring approval")
@click.pass_context
def create_rule(ctx, name: str, match_type: str, no_approval: bool, **options):
    """Create a new rule.

    Examples:
        reconciler rule create "Amazon" --type counter_party --party amazon --category 3
        reconciler rule create "Small expenses" --type amount --min 50 --max 100 --txn-type expense --category 4
        reconciler rule create "Studio rent" --type conditions \\
            --condition counter_party contains landlord --condition amount greater_than 500 --category 7
    """
    service = RuleService(ctx.obj["db"])
    fields = _collect_criteria(ctx, options)
    try:
        rule_id = service.create_rule(
            ctx.obj["owner"], name, match_type, requires_approval=not no_approval, **fields
        )
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created rule '{name}' (ID: {rule_id})")


@rule_group.command("list")
@click.option("--active-only", is_flag=True, help="Show only active rules")
@click.pass_context
def list_rules(ctx, active_only: bool):
    """List rules in evaluation order."""
    service = RuleService(ctx.obj["db"])
    try:
        views = service.list_rule_views(ctx.obj["owner"])
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)

    if active_only:
        views = [view for view in views if view.rule.is_active]
    if not views:
        click.echo("No rules found.")
        return

    click.echo(f"\nFound {len(views)} rule(s):")
    click.echo("-" * 110)
    click.echo(
        f"{'ID':<5} {'Pri':<5} {'Active':<7} {'Type':<14} {'Name':<25} {'Category':<20} {'Matches':<8}"
    )
    click.echo("-" * 110)
    for view in views:
        rule = view.rule
        click.echo(
            f"{rule.id:<5} {rule.priority:<5} {'yes' if rule.is_active else 'no':<7} "
            f"{rule.match_type:<14} {rule.name[:25]:<25} {(view.action_category_name or '-')[:20]:<20} "
            f"{rule.match_count:<8}"
        )
        click.echo(f"{'':<5} {_describe_criteria(rule)}")


@rule_group.command("update")
@click.argument("rule_id", type=int)
@click.option("--name", help="New rule name")
@click.option("--type", "match_type", type=click.Choice(MATCH_TYPES), help="How the rule matches")
@criteria_options
@click.option("--clear-conditions", is_flag=True, help="Remove all structured conditions")
@click.pass_context
def update_rule(ctx, rule_id: int, clear_conditions: bool, **options):
    """Update a rule.

    Updates only the fields that are provided. Pass an empty string to clear a
    pattern, e.g. --pattern "".
    """
    service = RuleService(ctx.obj["db"])
    changes = _collect_criteria(ctx, options)
    if clear_conditions:
        changes["conditions"] = []
    if not changes:
        click.echo("Error: Nothing to update", err=True)
        ctx.exit(1)

    try:
        service.update_rule(ctx.obj["owner"], rule_id, **changes)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated rule {rule_id}")


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete_rule(ctx, rule_id: int, yes: bool):
    """Delete a rule. Matches it produced are kept as manual matches."""
    service = RuleService(ctx.obj["db"])
    try:
        rule = service.require_rule(ctx.obj["owner"], rule_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not yes and not click.confirm(f"Are you sure you want to delete rule '{rule.name}'?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_rule(ctx.obj["owner"], rule_id)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted rule {rule_id}")


def _toggle(ctx, rule_id: int, is_active: bool) -> None:
    service = RuleService(ctx.obj["db"])
    try:
        rule = service.toggle_rule_active(ctx.obj["owner"], rule_id, is_active)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"Rule {rule_id} '{rule.name}' {'enabled' if is_active else 'disabled'}")


@rule_group.command("enable")
@click.argument("rule_id", type=int)
@click.pass_context
def enable_rule(ctx, rule_id: int):
    """Enable a rule."""
    _toggle(ctx, rule_id, True)


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id: int):
    """Disable a rule."""
    _toggle(ctx, rule_id, False)


@rule_group.command("preview")
@click.option(
    "--type", "match_type", required=True, type=click.Choice(MATCH_TYPES), help="How the rule matches"
)
@criteria_options
@click.pass_context
def preview_rule(ctx, match_type: str, **options):
    """Show what an unsaved rule would match, without saving anything."""
    service = RuleService(ctx.obj["db"])
    fields = _collect_criteria(ctx, options)
    try:
        draft = build_rule(ctx.obj["owner"], "preview", match_type, **fields)
        preview = service.preview_rule(ctx.obj["owner"], draft)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    _echo_preview(preview)


@rule_group.command("test")
@click.argument("rule_id", type=int)
@click.pass_context
def test_rule(ctx, rule_id: int):
    """Show what a saved rule would match right now."""
    service = RuleService(ctx.obj["db"])
    try:
        preview = service.test_rule(ctx.obj["owner"], rule_id)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
    _echo_preview(preview)


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
