import click
from flask import current_app
from flask.cli import AppGroup

from modelsuite.utils.logging_utils import get_logger

suite_cli = AppGroup("modelsuite", help="Manage the tables of the registered model suite.")


def _extension():
    ext = current_app.extensions.get("modelsuite")
    if ext is None or ext.db is None:
        raise click.ClickException("modelsuite is not initialised for this app")
    return ext


@suite_cli.command("sync")
def sync_command():
    """Create tables for every registered model (idempotent)."""
    ext = _extension()
    ext.db.sync()
    get_logger("app").info("CLI sync completed for %s", ext.db.url)
    click.echo(f"✔ Synced {len(ext.models)} models: {', '.join(ext.models)}")


@suite_cli.command("drop")
@click.option("--yes", is_flag=True, default=False, help="Skip the confirmation prompt")
def drop_command(yes: bool):
    """Drop every table known to the suite's connection."""
    ext = _extension()
    if not yes:
        click.confirm(f"Drop all tables on {ext.db.url}?", abort=True)
    ext.db.drop()
    get_logger("app").warning("CLI drop completed for %s", ext.db.url)
    click.echo("✔ Dropped tables")


@suite_cli.command("models")
def models_command():
    """List registered models with their table and columns."""
    ext = _extension()
    if not ext.models:
        click.echo("ℹ No models registered")
        return
    for name, model in ext.models.items():
        columns = ", ".join(column.name for column in model.__table__.columns)
        click.echo(f"{name} ({model.__tablename__}): {columns}")
