# Overview: Flask CLI commands for bootstrap, inspection, snapshots and maintenance.

# Commands legend (run from backend/ with FLASK_APP=wsgi.py, PowerShell: $env:FLASK_APP="wsgi.py"):
#
# System bootstrap/repair:
# - python -m flask system init
#   Create a demo supermarket with one owner and one operator (idempotent by email).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Supermarket inspection:
# - python -m flask supermarkets list
#   List all supermarkets (tenants) with their owner.
#
# User inspection/bootstrap:
# - python -m flask users list [--supermarket-id 1]
#   List users with role and active status.
# - python -m flask users create --supermarket-id 1 --name "Ana" --email ana@mercado.local --password "secret1" --role operator
#   Create a user (prompts if options are omitted).
#
# Snapshots:
# - python -m flask data export --supermarket-id 1 [--path snapshot.json]
#   Write every collection of one supermarket to a JSON snapshot file.
# - python -m flask data import [--path snapshot.json]
#   Create a new supermarket from a snapshot file.
#
# Shifts:
# - python -m flask shifts list --supermarket-id 1 [--status OPEN|CLOSED|SUPERSEDED]
#   List recent shifts with totals.
#
# Maintenance:
# - python -m flask sessions cleanup
#   Delete expired or revoked sessions older than 30 days.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Supermarket, User, Role, Shift, SHIFT_OPEN, SHIFT_CLOSED, SHIFT_SUPERSEDED
from .services.auth_service import create_user, register, PasswordValidationError
from .services import session_service, shift_service
from .services.snapshot_service import JsonSnapshotStore, export_supermarket, import_supermarket
from .validation import ValidationError, ConflictError, money_str


DEMO_PASSWORD = "mercado123"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--name', 'supermarket_name', default='Mercado Demo', help='Supermarket name')
@with_appcontext
def init_system(supermarket_name):
    """
    Create a demo supermarket with an owner and an operator.

    Creates:
    - Supermarket (tenant root)
    - Owner: dono@mercado.local
    - Operator: caixa@mercado.local
    - Both passwords default to: "mercado123"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing Mercado...")

    owner = db.session.query(User).filter_by(email="dono@mercado.local").first()
    if owner:
        click.echo(f"WARN  Owner already exists (supermarket {owner.supermarket_id}), skipping...")
    else:
        try:
            owner = register(
                {"name": "Dono", "email": "dono@mercado.local", "password": DEMO_PASSWORD},
                {"name": supermarket_name},
            )
        except (ValidationError, PasswordValidationError) as e:
            click.echo(f"FAIL Could not register supermarket: {e}")
            raise SystemExit(1)
        click.echo(f"PASS Created supermarket: {supermarket_name} (ID: {owner.supermarket_id})")
        click.echo(f"PASS Created owner: {owner.email}")

    operator = db.session.query(User).filter_by(email="caixa@mercado.local").first()
    if operator:
        click.echo("WARN  Operator 'caixa@mercado.local' already exists, skipping...")
    else:
        operator = create_user(owner.supermarket_id, "Caixa 1", "caixa@mercado.local", DEMO_PASSWORD, Role.OPERATOR)
        click.echo(f"PASS Created operator: {operator.email}")

    click.echo("\n" + "="*60)
    click.echo("DONE Mercado Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   owner    -> dono@mercado.local  / {DEMO_PASSWORD}")
    click.echo(f"   operator -> caixa@mercado.local / {DEMO_PASSWORD}")
    click.echo("")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('supermarkets')
def supermarkets_group():
    """Supermarket (tenant) inspection."""


@supermarkets_group.command('list')
@with_appcontext
def list_supermarkets():
    """List all supermarkets."""
    supermarkets = db.session.query(Supermarket).order_by(Supermarket.id).all()

    if not supermarkets:
        click.echo("No supermarkets found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Theme':<8} {'Owner':<30}")
    click.echo("="*80)

    for s in supermarkets:
        owner = db.session.get(User, s.owner_id) if s.owner_id else None
        click.echo(f"{s.id:<5} {s.name[:30]:<30} {s.theme:<8} {owner.email if owner else '-':<30}")

    click.echo("="*80 + "\n")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@click.option('--supermarket-id', type=int, help='Filter by supermarket ID')
@with_appcontext
def list_users(supermarket_id):
    """List all users with their roles."""
    query = db.session.query(User)

    if supermarket_id:
        query = query.filter_by(supermarket_id=supermarket_id)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Mkt':<5} {'Name':<25} {'Email':<35} {'Active':<8} {'Role'}")
    click.echo("="*100)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.supermarket_id:<5} {user.name[:25]:<25} "
            f"{user.email[:35]:<35} {active_str:<8} {user.role.value}"
        )

    click.echo("="*100 + "\n")


@users_group.command('create')
@click.option('--supermarket-id', type=int, prompt=True, help='Supermarket ID')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in Role]), default=Role.OPERATOR.value, help='Role')
@with_appcontext
def create_user_cmd(supermarket_id, name, email, password, role):
    """Create a user in an existing supermarket."""
    if db.session.get(Supermarket, supermarket_id) is None:
        click.echo(f"FAIL Supermarket {supermarket_id} not found")
        raise SystemExit(1)

    try:
        user = create_user(supermarket_id, name, email, password, Role(role))
    except (ValidationError, ConflictError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role.value}'")


@click.group('data')
def data_group():
    """JSON snapshot export/import."""


@data_group.command('export')
@click.option('--supermarket-id', type=int, required=True, help='Supermarket to export')
@click.option('--path', default=None, help='Snapshot file (defaults to SNAPSHOT_PATH)')
@with_appcontext
def export_data(supermarket_id, path):
    """Write one supermarket to a snapshot file."""
    store = JsonSnapshotStore(path or current_app.config["SNAPSHOT_PATH"])
    try:
        counts = export_supermarket(store, supermarket_id)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Exported supermarket {supermarket_id} to {store.path}")
    for key, count in counts.items():
        click.echo(f"   {key:<15} {count}")


@data_group.command('import')
@click.option('--path', default=None, help='Snapshot file (defaults to SNAPSHOT_PATH)')
@with_appcontext
def import_data(path):
    """Create a new supermarket from a snapshot file."""
    store = JsonSnapshotStore(path or current_app.config["SNAPSHOT_PATH"])
    try:
        supermarket = import_supermarket(store)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Imported supermarket: {supermarket.name} (ID: {supermarket.id})")


@click.group('shifts')
def shifts_group():
    """Shift inspection."""


@shifts_group.command('list')
@click.option('--supermarket-id', type=int, required=True, help='Supermarket ID')
@click.option('--status', type=click.Choice([SHIFT_OPEN, SHIFT_CLOSED, SHIFT_SUPERSEDED]), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max rows')
@with_appcontext
def list_shifts(supermarket_id, status, limit):
    """List recent shifts, newest first."""
    query = db.session.query(Shift).filter(Shift.supermarket_id == supermarket_id)
    if status:
        query = query.filter(Shift.status == status)
    shifts = query.order_by(Shift.opened_at.desc(), Shift.id.desc()).limit(limit).all()

    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<6} {'Operator':<25} {'Status':<12} {'Opened':<22} {'Sales':<12} {'Final cash'}")
    click.echo("="*90)

    for shift in shifts:
        totals = shift_service.shift_summary(shift)["totals"]
        operator_name = shift.operator.name if shift.operator else "-"
        click.echo(
            f"{shift.id:<6} {operator_name[:25]:<25} {shift.status:<12} "
            f"{shift.opened_at.strftime('%Y-%m-%d %H:%M'):<22} "
            f"{money_str(totals['total_sales_cents']):<12} {money_str(totals['final_cash_cents'])}"
        )

    click.echo("="*90 + "\n")


@click.group('sessions')
def sessions_group():
    """Session maintenance."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions():
    """Delete expired or revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} stale session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(supermarkets_group)
    app.cli.add_command(users_group)
    app.cli.add_command(data_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(sessions_group)
