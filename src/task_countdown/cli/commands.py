# src/task_countdown/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import date, datetime, time
from pathlib import Path
from typing import cast

from ..core.state import AppState
from ..countdown.alerts import CountdownSnapshot
from ..tasks import task_api
from ..tasks.task_models import Recurrence, Task, ValidationError

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_CLEAR = "-"


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering / parsing helpers ----


def render_snapshot(snapshot: CountdownSnapshot | None) -> str:
    if snapshot is None:
        return "[COUNTDOWN] No active tasks."
    if not snapshot.time:
        return f"[COUNTDOWN] {snapshot.title}"
    return f"[COUNTDOWN] ({snapshot.color.value}) {snapshot.title}: {snapshot.time}"


def _fmt_instant(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def render_task(task: Task) -> str:
    mark = "x" if task.completed else " "
    line = f"[{mark}] {task.id[:8]} {task.title}  start={_fmt_instant(task.start_at())} due={_fmt_instant(task.due_at())}"
    if task.recurrence is not Recurrence.NONE:
        line += f" repeat={task.recurrence.value}"
    return line


def parse_when(raw: str, *, today: date | None = None) -> tuple[date | None, time | None]:
    """
    Parse a command-line date/time value.

    Accepted: "YYYY-MM-DD", "YYYY-MM-DDTHH:MM", "HH:MM" (today) and "-" (clear).
    Raises ValidationError on anything else.
    """
    raw = raw.strip()
    if raw == _CLEAR:
        return None, None
    try:
        if "T" in raw:
            d_raw, t_raw = raw.split("T", 1)
            return date.fromisoformat(d_raw), time.fromisoformat(t_raw)
        if ":" in raw:
            return (today or date.today()), time.fromisoformat(raw)
        return date.fromisoformat(raw), None
    except ValueError as e:
        raise ValidationError(f"Bad date/time {raw!r} (use YYYY-MM-DD[THH:MM] or HH:MM).") from e


def split_options(args: list[str], allowed: set[str]) -> tuple[str, dict[str, str]]:
    """Split `key=value` tokens (for known keys) from the free-text title."""
    words: list[str] = []
    opts: dict[str, str] = {}
    for token in args:
        key, sep, value = token.partition("=")
        if sep and key.lower() in allowed:
            opts[key.lower()] = value
        else:
            words.append(token)
    return " ".join(words).strip(), opts


def _parse_recurrence(raw: str | None, default: Recurrence = Recurrence.NONE) -> Recurrence:
    if raw is None:
        return default
    try:
        return Recurrence(raw.strip().lower())
    except ValueError as e:
        raise ValidationError(f"Unknown repeat rule {raw!r} (none|daily|weekly|monthly).") from e


def resolve_task(state: AppState, token: str) -> Task:
    matches = state.task_store.find_by_prefix(token)
    if not matches:
        raise KeyError(token)
    if len(matches) > 1:
        raise ValidationError(f"Task id {token!r} is ambiguous ({len(matches)} matches).")
    return matches[0]


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    engine_state = state.engine.driver.state
    tasks = state.task_store.list_tasks()
    active = sum(1 for t in tasks if not t.completed)

    if not getattr(settings, "sound_enabled", True):
        sound = "OFF"
    elif engine_state.audio_locked:
        sound = "BLOCKED (use /sound)"
    else:
        sound = "ON"

    return (
        "Status:\n"
        f"  Tasks: {len(tasks)} ({active} active)\n"
        f"  Tick interval: {getattr(settings, 'tick_interval_seconds', 1.0):.2f}s\n"
        f"  Sound: {sound}\n"
        f"  Alarm playing: {'yes' if engine_state.alarm_active else 'no'}\n"
        f"  Matrix notifications: {'ON' if getattr(settings, 'matrix_enabled', False) else 'OFF'}\n"
        f"  {render_snapshot(state.engine.last_snapshot)}"
    )


def cmd_now(state: AppState, args: list[str]) -> str:
    return render_snapshot(state.engine.last_snapshot)


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list [all|active|completed] [sort=end|start|created|title] [q=text]
    """
    rest, opts = split_options(args, {"sort", "q"})
    filter_by = rest.lower() or "all"
    if filter_by not in task_api.FILTERS:
        return f"Unknown filter {filter_by!r}. Use one of: {', '.join(task_api.FILTERS)}."
    sort_by = opts.get("sort", "end").lower()
    if sort_by not in task_api.SORTS:
        return f"Unknown sort {sort_by!r}. Use one of: {', '.join(task_api.SORTS)}."

    tasks = task_api.visible_tasks(
        state.task_store.list_tasks(),
        filter_by=filter_by,
        sort_by=sort_by,
        query=opts.get("q", ""),
    )
    if not tasks:
        return "No tasks."
    return "\n".join(render_task(t) for t in tasks)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title> [start=YYYY-MM-DD[THH:MM]] [end=...] [repeat=none|daily|weekly|monthly]
    """
    title, opts = split_options(args, {"start", "end", "repeat"})
    try:
        start_date, start_time = parse_when(opts["start"]) if "start" in opts else (None, None)
        end_date, end_time = parse_when(opts["end"]) if "end" in opts else (None, None)
        task = task_api.create_task(
            state.task_store,
            title=title,
            start_date=start_date,
            start_time=start_time,
            end_date=end_date,
            end_time=end_time,
            recurrence=_parse_recurrence(opts.get("repeat")),
        )
    except ValidationError as e:
        return f"Not added: {e}"
    return f"Added: {render_task(task)}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <id> [new title] [start=...|-] [end=...|-] [repeat=...]
    Fields not given keep their current value; "-" clears a date.
    """
    if not args:
        return "Usage: /edit <id> [title] [start=...] [end=...] [repeat=...]"
    title, opts = split_options(args[1:], {"start", "end", "repeat"})
    try:
        current = resolve_task(state, args[0])

        start_date, start_time = current.start_date, current.start_time
        end_date, end_time = current.end_date, current.end_time
        if "start" in opts:
            start_date, start_time = parse_when(opts["start"])
        if "end" in opts:
            end_date, end_time = parse_when(opts["end"])

        task = task_api.edit_task(
            state.task_store,
            current.id,
            title=title,
            start_date=start_date,
            start_time=start_time,
            end_date=end_date,
            end_time=end_time,
            recurrence=_parse_recurrence(opts.get("repeat"), current.recurrence),
        )
    except KeyError:
        return f"No task with id {args[0]!r}."
    except ValidationError as e:
        return f"Not saved: {e}"
    return f"Saved: {render_task(task)}"


def cmd_done(state: AppState, args: list[str]) -> str:
    """/done <id> -> toggle completion (recurring tasks spawn their next occurrence)"""
    if not args:
        return "Usage: /done <id>"
    try:
        task = resolve_task(state, args[0])
        successor = task_api.toggle_complete(state.task_store, task.id)
    except KeyError:
        return f"No task with id {args[0]!r}."
    except ValidationError as e:
        return str(e)

    verb = "Reopened" if task.completed else "Completed"
    reply = f"{verb}: {task.title}"
    if successor is not None:
        reply += f"\nNext occurrence: {render_task(successor)}"
    return reply


def cmd_del(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /del <id>"
    try:
        task = resolve_task(state, args[0])
        task_api.delete_task(state.task_store, task.id)
    except KeyError:
        return f"No task with id {args[0]!r}."
    except ValidationError as e:
        return str(e)
    return f"Deleted: {task.title}"


def cmd_sound(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/sound -> explicit unlock of audio playback"""
    if not getattr(state.settings, "sound_enabled", True):
        return "Sound is disabled by configuration (TASKCD_SOUND_ENABLED)."
    if emit:
        emit("[SOUND] Initializing audio output...")
    if state.engine.unlock_audio():
        return "Sound enabled."
    return "Sound is still unavailable (install sounddevice + numpy and check the output device)."


def cmd_export(state: AppState, args: list[str]) -> str:
    if args:
        path = Path(args[0]).expanduser()
    else:
        stamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        path = Path(state.settings.data_dir) / f"tasks-export-{stamp}.json"
    try:
        n = task_api.export_tasks(state.task_store, path)
    except OSError as e:
        logger.warning("Export to %s failed: %r", path, e)
        return f"Export failed: {e}"
    return f"Exported {n} task(s) to {path}"


def cmd_import(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /import <file.json>"
    try:
        n = task_api.import_tasks(state.task_store, Path(args[0]).expanduser())
    except ValidationError as e:
        return f"Import failed: {e}"
    return f"Import successful ({n} task(s))."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show engine status (sound/alarm/countdown).")
registry.register("now", cmd_now, help_text="Show the current countdown.")
registry.register(
    "list", cmd_list, help_text="List tasks: /list [all|active|completed] [sort=end|start|created|title] [q=text]."
)
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <title> [start=YYYY-MM-DD[THH:MM]] [end=...] [repeat=daily|weekly|monthly].",
)
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> [title] [start=...|-] [end=...|-] [repeat=...].")
registry.register("done", cmd_done, help_text="Toggle completion: /done <id>.", aliases=["toggle"])
registry.register("del", cmd_del, help_text="Delete a task: /del <id>.", aliases=["rm"])
registry.register("sound", cmd_sound, help_text="Enable sound after playback was blocked.")
registry.register("export", cmd_export, help_text="Export tasks as JSON: /export [path].")
registry.register("import", cmd_import, help_text="Import tasks from JSON (merge by id): /import <path>.")
