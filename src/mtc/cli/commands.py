"""Command-line interface for mtc."""

import logging
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import click
from rich.markup import escape
from rich.table import Table

from ..config import ConfigModel, load_config, load_sync_settings
from ..errors import InvalidInput, MtcError
from ..items import Event, Item, ItemKind, Task, Todo, Weekday
from ..reconcile import SyncMode
from ..store import DayFilter, LocalStorage, ReplicaStore
from ..sync import LocalFileAdapter, ScpAdapter, SyncManager
from ..theme import get_error_console, get_themed_console, kind_style
from ..timer import run_countdown
from ..utils.datetime import days_between, today as local_today
from ..utils.validation import validate_date, validate_duration, validate_weekday, validate_weekdays

logger = logging.getLogger(__name__)

SHOW_TARGETS = "todos | tasks | events | <weekday> | today | tomorrow | overview | week | month"


def get_console(config: Optional[ConfigModel] = None):
    """Get a themed console that reflects current configuration."""
    return get_themed_console(no_color=bool(config and config.no_color))


def fail(message: str, config: Optional[ConfigModel] = None) -> None:
    """Report an error and terminate the command with a non-zero exit code."""
    get_error_console(no_color=bool(config and config.no_color)).print(f"[error]{escape(message)}[/error]")
    sys.exit(1)


def open_store(config: ConfigModel) -> Tuple[LocalStorage, ReplicaStore]:
    """Load the local replica, applying load-time event expiry if configured."""
    storage = LocalStorage(config.data_dir)
    store = storage.load()
    logger.debug(f"Loaded local replica from {storage.data_dir}")
    if config.expire_events_on_load and store.expire_events(local_today(), config.event_expiry_days):
        storage.save(store)
    return storage, store


def describe(item: Item) -> str:
    """Kind-specific details of an item for display."""
    if isinstance(item, Todo):
        return item.weekday.label if item.weekday else "any day"
    if isinstance(item, Task):
        days = ", ".join(wd.label for wd in item.sorted_weekdays()) or "daily"
        return f"{item.duration} min, {days}"
    if isinstance(item, Event):
        return item.date.isoformat()
    raise TypeError(f"Not an mtc item: {item!r}")


def build_kind_table(store: ReplicaStore, kind: ItemKind) -> Table:
    table = Table(title=f"[header]{kind.plural.capitalize()}[/header]", border_style="border")
    table.add_column("ID", style="muted", justify="right")
    table.add_column(kind.value.capitalize(), style=kind_style(kind))
    table.add_column("Details", style="accent")
    for item in store.list(kind):
        table.add_row(str(item.id), escape(item.body), describe(item))
    return table


def build_day_table(store: ReplicaStore, day: date, day_filter: DayFilter,
                    kinds: Sequence[ItemKind] = tuple(ItemKind)) -> Table:
    table = Table(
        title=f"[header]{Weekday.of(day).label} {day.isoformat()}[/header]",
        border_style="border",
        title_justify="left",
    )
    table.add_column("Type", style="muted")
    table.add_column("ID", style="muted", justify="right")
    table.add_column("Item")
    table.add_column("Details", style="accent")

    for kind, item in store.items_on(day, day_filter):
        if kind not in kinds:
            continue
        style = kind_style(kind)
        if not item.occurs_on(day):
            style = "overdue"
        table.add_row(kind.value, str(item.id), f"[{style}]{escape(item.body)}[/{style}]", describe(item))
    return table


def resolve_show_target(target: str, today: date, config: ConfigModel) -> Tuple[str, List[date]]:
    """Map a ``show`` argument to a view name and the dates it covers."""
    token = target.strip().lower()
    if token == "today":
        return "days", [today]
    if token == "tomorrow":
        return "days", [today + timedelta(days=1)]
    if token == "week":
        return "days", list(days_between(today, today + timedelta(days=6)))
    if token == "month":
        return "days", list(days_between(today, today + timedelta(days=config.month_days - 1)))
    if token == "overview":
        return "overview", []
    try:
        return "kind", [ItemKind.parse(token)]
    except InvalidInput:
        pass
    try:
        weekday = Weekday.parse(token)
    except InvalidInput:
        raise InvalidInput(f"Unknown show target '{target}' (expected {SHOW_TARGETS}).")
    return "days", [DayFilter.for_weekday(weekday, today).start]


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to config file")
@click.option("--data-dir", type=click.Path(file_okay=False), envvar="MTC_DATA_DIR",
              help="Directory holding the local replica")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx, config_path, data_dir, verbose):
    """mtc - My Time Contract, a CLI time management app.

    Keeps todos, recurring tasks and dated events, and syncs them with a
    remote copy. Ids are positions in the sorted list of a type and may
    change after add, set or sync.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        ctx.obj['config'] = load_config(Path(config_path) if config_path else None, data_dir)
    except MtcError as e:
        fail(f"Configuration error: {e}")


@cli.command()
@click.argument("target", required=False, default="overview")
@click.pass_context
def show(ctx, target):
    """Show saved items.

    TARGET is one of: todos, tasks, events, a weekday, today, tomorrow,
    overview (default), week or month.
    """
    config = ctx.obj['config']
    console = get_console(config)
    try:
        _, store = open_store(config)
        today = local_today()
        policy = config.listing_policy()
        view, values = resolve_show_target(target, today, config)
    except MtcError as e:
        fail(str(e), config)
        return

    if view == "kind":
        console.print(build_kind_table(store, values[0]))
    elif view == "days":
        for day in values:
            console.print(build_day_table(store, day, DayFilter.for_date(day, today, **policy)))
    else:
        for weekday in Weekday:
            day = DayFilter.for_weekday(weekday, today).start
            console.print(build_day_table(store, day, DayFilter.for_date(day, today, **policy),
                                          kinds=(ItemKind.TODO, ItemKind.TASK)))
        console.print(build_kind_table(store, ItemKind.EVENT))


def build_item(kind: ItemKind, body: str, args: Sequence[str], config: ConfigModel) -> Item:
    """Construct an item of ``kind`` from command-line arguments.

    Raises:
        InvalidInput: If required arguments are missing or malformed
    """
    if kind is ItemKind.TODO:
        if len(args) > 1:
            raise InvalidInput("A todo takes at most one weekday.")
        return Todo(body=body, weekday=validate_weekday(args[0]) if args else None)
    if kind is ItemKind.TASK:
        if not args:
            raise InvalidInput("A task needs a duration in minutes.")
        return Task(
            body=body,
            duration=validate_duration(args[0]),
            weekdays=validate_weekdays(" ".join(args[1:])),
        )
    if not args:
        raise InvalidInput(f"An event needs a date ({config.date_format}).")
    if len(args) > 1:
        raise InvalidInput("An event takes exactly one date.")
    return Event(body=body, date=validate_date(args[0], config.date_format))


@cli.command()
@click.argument("item_type")
@click.argument("body")
@click.argument("args", nargs=-1)
@click.pass_context
def add(ctx, item_type, body, args):
    """Add an item of a given type.

    \b
    Examples:
      mtc add todo "Buy milk" fri
      mtc add task "Gym" 60 mon wed
      mtc add event "Dentist" 2024-01-10
    """
    config = ctx.obj['config']
    try:
        kind = ItemKind.parse(item_type)
        storage, store = open_store(config)
        item = build_item(kind, body, args, config)
        item_id = store.add(item)
        storage.save(store)
    except MtcError as e:
        fail(str(e), config)
        return

    get_console(config).print(
        f"[success]Added {kind.value}[/success] [{kind_style(kind)}]{escape(item.body)}[/{kind_style(kind)}] "
        f"[muted]with id {item_id}[/muted]"
    )


@cli.command()
@click.argument("item_type")
@click.argument("item_id", type=int)
@click.pass_context
def remove(ctx, item_type, item_id):
    """Remove an item of a given type.

    The item is hidden immediately and deleted everywhere on the next sync.
    """
    config = ctx.obj['config']
    try:
        kind = ItemKind.parse(item_type)
        storage, store = open_store(config)
        item = store.remove(kind, item_id)
        storage.save(store)
    except MtcError as e:
        fail(str(e), config)
        return

    get_console(config).print(f"[success]Removed {kind.value}[/success] {escape(item.body)} [muted]({item_id})[/muted]")


@cli.command(name="set")
@click.argument("item_type")
@click.argument("item_id", type=int)
@click.argument("property_name")
@click.argument("value")
@click.pass_context
def set_property(ctx, item_type, item_id, property_name, value):
    """Set a property of an item.

    \b
    Properties:
      todo:  body, weekday
      task:  body, duration, weekdays
      event: body, date
    """
    config = ctx.obj['config']
    try:
        kind = ItemKind.parse(item_type)
        storage, store = open_store(config)
        if kind is ItemKind.EVENT and property_name.strip().lower() == "date":
            value = validate_date(value, config.date_format)
        item = store.set(kind, item_id, property_name, value)
        storage.save(store)
    except MtcError as e:
        fail(str(e), config)
        return

    moved = f", now id {item.id}" if item.id != item_id else ""
    get_console(config).print(f"[success]Updated {kind.value}[/success] {escape(item.body)}: {describe(item)}{moved}")


@cli.command(name="do")
@click.argument("task_id", type=int)
@click.pass_context
def do_task(ctx, task_id):
    """Show a countdown timer for a task."""
    config = ctx.obj['config']
    try:
        _, store = open_store(config)
        task = store.tasks.get_active(task_id)
    except MtcError as e:
        fail(str(e), config)
        return

    console = get_console(config)
    console.print(f"[primary]{escape(task.body)}[/primary] [muted]({task.duration} min)[/muted]")
    run_countdown(task.duration, task.body, console)


@cli.command()
@click.argument("mode", required=False, default="normal",
                type=click.Choice([mode.value for mode in SyncMode]))
@click.option("--remote-dir", type=click.Path(file_okay=False),
              help="Use a local or mounted directory as the remote instead of the sync settings")
@click.pass_context
def sync(ctx, mode, remote_dir):
    """Sync all items with the remote copy.

    \b
    normal     merge with the remote copy (default)
    overwrite  replace the remote copy with the local items
    self       merge the local items with themselves, no remote

    Ids may change after a sync.
    """
    config = ctx.obj['config']
    sync_mode = SyncMode(mode)
    try:
        storage, store = open_store(config)
        adapter = None
        if sync_mode.needs_remote:
            if remote_dir:
                adapter = LocalFileAdapter(remote_dir)
            else:
                settings = load_sync_settings(config.get_sync_settings_path())
                adapter = ScpAdapter(settings, timeout=config.sync_timeout)
        manager = SyncManager(storage, adapter, expiry_days=config.event_expiry_days)
        result = manager.sync(sync_mode, store=store)
    except MtcError as e:
        fail(f"Failed to sync: {e}", config)
        return

    get_console(config).print(f"[success]{result.summary()}[/success]")


@cli.command(name="help")
@click.pass_context
def help_command(ctx):
    """Show this help output."""
    click.echo(ctx.parent.get_help())


def main():
    """Entry point for the ``mtc`` command."""
    cli(obj={})


if __name__ == "__main__":
    main()
