"""Category, vendor and staff commands."""

import click
from reconciler.domain.errors import DomainError, StorageError
from reconciler.domain.lookups import LookupService


def _echo_rows(title: str, rows: list, empty: str) -> None:
    if not rows:
        click.echo(empty)
        return
    click.echo(f"\n{title}:")
    for row in rows:
        role = getattr(row, "role", None)
        suffix = f" [{role}]" if role else ""
        click.echo(f"  {row.name}{suffix} (ID: {row.id})")


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("add")
@click.argument("name")
@click.pass_context
def add_category(ctx, name: str):
    """Create a new category."""
    service = LookupService(ctx.obj["db"])
    try:
        category_id = service.create_category(ctx.obj["owner"], name)
    except (DomainError, StorageError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    click.echo(f"Created category '{name}' (ID: {category_id})")


@category_group.command("list")
@click.pass_context
def list_categories(ctx):
    """List all categories."""
    service = LookupService(ctx.obj["db"])
    try:
        categories = service.list_categories(ctx.obj["owner"])
    except DomainError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    _echo_rows("Categories", categories, "No categories found.")


@click.group()
def vendor_group():
    """Manage vendors."""
    pass


@vendor_group.command("add")
@click.argument("name")
@click.pass_context
def add_vendor(ctx, name: str):
    """Create a new vendor."""
    service = LookupService(ctx.obj["db"])
    try:
        vendor_id = service.create_vendor(ctx.obj["owner"], name)
    except (DomainError, StorageError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    click.echo(f"Created vendor '{name}' (ID: {vendor_id})")


@vendor_group.command("list")
@click.pass_context
def list_vendors(ctx):
    """List all vendors."""
    service = LookupService(ctx.obj["db"])
    try:
        vendors = service.list_vendors(ctx.obj["owner"])
    except DomainError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    _echo_rows("Vendors", vendors, "No vendors found.")


@click.group()
def staff_group():
    """Manage staff members."""
    pass


@staff_group.command("add")
@click.argument("name")
@click.option("--role", default="staff", help="Role (default: staff)")
@click.pass_context
def add_staff(ctx, name: str, role: str):
    """Create a new staff member."""
    service = LookupService(ctx.obj["db"])
    try:
        staff_id = service.create_staff(ctx.obj["owner"], name, role=role)
    except (DomainError, StorageError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    click.echo(f"Created staff member '{name}' (ID: {staff_id})")


@staff_group.command("list")
@click.pass_context
def list_staff(ctx):
    """List all staff members."""
    service = LookupService(ctx.obj["db"])
    try:
        staff = service.list_staff(ctx.obj["owner"])
    except DomainError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    _echo_rows("Staff", staff, "No staff found.")


def register_commands(cli):
    """Register lookup commands with main CLI."""
    cli.add_command(category_group, name="category")
    cli.add_command(vendor_group, name="vendor")
    cli.add_command(staff_group, name="staff")
