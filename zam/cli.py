import csv
import io
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich import box

from zam import __version__
from zam.config import Config
from zam.errors import NotFound, ZamError
from zam.models import Alias
from zam.porter import FORMATS, AliasPorter
from zam.storage import AliasStorage

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class AppContext:
    """Per-invocation state handed to every command.

    The database is opened on first use, so ``--help`` and ``config`` never
    touch it.
    """

    def __init__(self, config: Config, db_path: Optional[Path] = None):
        self.config = config
        self.db_path = db_path
        self._storage: Optional[AliasStorage] = None

    @property
    def storage(self) -> AliasStorage:
        if self._storage is None:
            db_path = self.db_path or self.config.resolve_database_path()
            logger.debug("Using database %s", db_path)
            try:
                self._storage = AliasStorage(db_path)
            except ZamError as e:
                fail("initializing database", e)
        return self._storage

    @property
    def porter(self) -> AliasPorter:
        return AliasPorter(self.storage)

    def close(self) -> None:
        if self._storage is not None:
            self._storage.close()
            self._storage = None


pass_app = click.make_pass_decorator(AppContext)


def fail(action: str, error: Exception) -> None:
    logger.debug("%s failed", action, exc_info=error)
    err_console.print(f"[red]✗[/] Error {action}: {escape(str(error))}")
    sys.exit(1)


@click.group()
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Database file (default: ~/.config/zam/zam.db or $ZAM_DATABASE_FILE)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.version_option(version=__version__, prog_name="zam")
@click.pass_context
def main(ctx, db_path, verbose):
    """zam - Zsh alias manager

    Keep your shell aliases in one database and load them with
    eval "$(zam aliases)".
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)

    ctx.obj = AppContext(Config(), db_path)
    ctx.call_on_close(ctx.obj.close)


@main.command()
@click.argument("alias")
@click.argument("command")
@click.argument("description", required=False, default="")
@click.option("--shell", "-s", default="", help="Shell the alias targets (bash, zsh, fish)")
@pass_app
def add(app, alias, command, description, shell):
    """Add a new alias"""
    new_alias = Alias.new(alias, command, description, shell=shell)
    try:
        app.storage.add(new_alias)
    except ZamError as e:
        fail("adding alias", e)
    console.print(f"[green]✔[/] Added alias: [cyan]{escape(alias)}[/] = '{escape(command)}'")


@main.command()
@click.argument("alias")
@click.argument("command")
@pass_app
def update(app, alias, command):
    """Update the command of an existing alias"""
    try:
        existing = app.storage.get(alias)
        if existing is None:
            raise NotFound(alias)
        existing.update(command)
        app.storage.update(existing)
    except ZamError as e:
        fail("updating alias", e)
    console.print(f"[green]✔[/] Updated alias: [cyan]{escape(alias)}[/] = '{escape(command)}'")


@main.command()
@click.argument("alias")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@pass_app
def remove(app, alias, yes):
    """Remove an alias"""
    if app.config.get("confirm_delete") and not yes:
        if not click.confirm(f"Remove alias '{alias}'?"):
            return

    try:
        existed = app.storage.remove(alias)
    except ZamError as e:
        fail("removing alias", e)

    if existed:
        console.print(f"[green]✔[/] Removed alias: [cyan]{escape(alias)}[/]")
    else:
        console.print(f"[yellow]Alias '{escape(alias)}' was not stored, nothing to remove[/]")


@main.command()
@pass_app
def aliases(app):
    """List all aliases in shell `eval` ready format"""
    try:
        records = app.storage.list_all()
    except ZamError as e:
        fail("listing aliases", e)
    for record in records:
        click.echo(str(record))


@main.command()
@pass_app
def display(app):
    """List all aliases in descriptive format"""
    try:
        rows = list(csv.reader(io.StringIO(app.porter.export_to_text())))
    except ZamError as e:
        fail("listing aliases", e)

    header, records = rows[0], rows[1:]
    if not records:
        console.print("[yellow]No aliases found.[/] Add one with 'zam add'")
        return

    theme = app.config.get_theme()
    styles = {
        "alias": theme["alias_color"],
        "command": theme["command_color"],
        "description": theme["description_color"],
        "date_updated": theme["date_color"],
    }
    columns = [name for name in header if app.config.get("show_dates", True) or name != "date_updated"]

    table = Table(box=box.SIMPLE_HEAD)
    for name in columns:
        table.add_column(name, style=styles.get(name), no_wrap=name == "alias")
    for record in records:
        values = dict(zip(header, record))
        table.add_row(*(escape(values[name]) for name in columns))

    console.print(table)


@main.command()
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path), required=False)
@click.option(
    "--format",
    "-f",
    "format_",
    type=click.Choice(FORMATS),
    default="csv",
    help="Export format (json and yaml keep every field)",
)
@pass_app
def export(app, file, format_):
    """Export aliases to FILE, or print CSV when no file is given"""
    try:
        if file is None:
            click.echo(app.porter.export_to_text(), nl=False)
            return
        count = app.porter.export_to_file(file, format=format_)
    except ZamError as e:
        fail("exporting aliases", e)
    logger.debug("Wrote %d aliases to %s as %s", count, file, format_)
    console.print(f"[green]✔[/] Exported {count} aliases to {escape(file.name)}")


@main.command(name="import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--atomic", is_flag=True, help="Roll back every row if any row fails")
@click.option("--dry-run", is_flag=True, help="Show what would be imported without importing")
@pass_app
def import_(app, file, atomic, dry_run):
    """Import aliases from a CSV, JSON or YAML file"""
    try:
        if dry_run:
            for record in app.porter.preview(file):
                console.print(f"  • [cyan]{escape(record.alias)}[/] = '{escape(record.command)}'")
            return
        count = app.porter.import_from_file(file, atomic=atomic)
    except ZamError as e:
        fail("importing aliases", e)
    logger.debug("Imported %d aliases from %s", count, file)
    console.print(f"[green]✔[/] Imported {count} aliases from {escape(file.name)}")


@main.command(name="config")
@click.argument("key", required=False)
@click.argument("value", required=False)
@pass_app
def config_(app, key, value):
    """Show settings, or set KEY to VALUE"""
    if key is None:
        for name, current in sorted(app.config.config.items()):
            console.print(f"{name} = {current!r}")
        return

    if key not in Config.DEFAULT_CONFIG:
        err_console.print(f"[red]✗[/] Unknown setting: {escape(key)}")
        sys.exit(1)
    if value is None:
        console.print(f"{key} = {app.config.get(key)!r}")
        return

    if isinstance(Config.DEFAULT_CONFIG[key], bool):
        value = value.lower() in ("1", "true", "yes", "on")
    elif key == "theme" and value not in Config.THEMES:
        err_console.print(f"[red]✗[/] Unknown theme: {escape(value)} (choose from {', '.join(Config.THEMES)})")
        sys.exit(1)
    app.config.set(key, value)
    console.print(f"[green]✔[/] {key} = {value!r}")


if __name__ == "__main__":
    main()
