"""
commands.py

Slash-command parser. Each todo or list command becomes the same typed
intent the assistant would produce, so both paths go through one validator
and one engine. REPL-only commands (/help, /chat, ...) come back as a
ReplCommand for the CLI to handle.

Todo references are either a display position (``2``) or a short id
(``a1b2c3d4``, ``{a1b2c3d4}``, ``#a1b2c3d4``).
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from todogpt.dates import parse_due_date
from todogpt.errors import CommandValidationError
from todogpt.identity import looks_like_short_id, normalize_short_id
from todogpt.intents import parse_intent

_ARG_RE = re.compile(r'--(\w+)\s+"([^"]+)"|--(\w+)\s+(\S+)|"([^"]+)"|(\S+)')

REPL_COMMANDS = ("help", "exit", "lists", "history", "config", "prompt", "chat")

TODO_FLAGS = ("priority", "due", "category", "tag", "description")
EDIT_FLAGS = TODO_FLAGS + ("title", "clear")
FILTER_FLAGS = ("status", "priority", "category", "query", "due_on", "due_before", "due_after")

# --clear <name> -> payload key
_CLEARABLE = {
    "description": "description",
    "priority": "priority",
    "due": "dueDate",
    "category": "categories",
    "categories": "categories",
    "tag": "tags",
    "tags": "tags",
}

USAGE = {
    "create": "/create <name>",
    "switch": "/switch <name>",
    "delete-list": "/delete-list <name>",
    "add": "/add <title> [--priority high|medium|low] [--due DATE] [--category a,b] [--tag x] [--description text]",
    "complete": "/complete <number|shortId>",
    "uncomplete": "/uncomplete <number|shortId>",
    "delete": "/delete <number|shortId>",
    "edit": "/edit <number|shortId> [--title t] [--priority p] [--due DATE] [--category a,b] [--clear field]",
    "move": "/move <number|shortId> <list name>",
    "filter": "/filter [--status completed|active] [--priority p] [--category c] [--query text]",
}


@dataclass(frozen=True)
class ReplCommand:
    name: str
    argument: str = ""


def is_slash_command(line: str) -> bool:
    return line.strip().startswith("/")


def parse_args(text: str) -> Tuple[List[str], Dict[str, str]]:
    """Split ``text`` into positional words and ``--flag value`` pairs."""
    positionals: List[str] = []
    flags: Dict[str, str] = {}
    for m in _ARG_RE.finditer(text or ""):
        if m.group(1):
            flags[m.group(1).lower()] = m.group(2)
        elif m.group(3):
            flags[m.group(3).lower()] = m.group(4)
        elif m.group(5) is not None:
            positionals.append(m.group(5))
        else:
            positionals.append(m.group(6))
    return positionals, flags


def parse_slash_command(line: str, today: Optional[date] = None):
    """
    Parse one ``/command ...`` line into an Intent or a ReplCommand.

    Raises:
        CommandValidationError: unknown command, bad arguments, bad date.
    """
    text = (line or "").strip()
    if not text.startswith("/"):
        raise CommandValidationError(f"Not a slash command: '{text}'")

    name, _, rest = text[1:].partition(" ")
    name = name.lower()
    rest = rest.strip()

    if name in REPL_COMMANDS:
        return ReplCommand(name=name, argument=rest)

    if name in ("create", "switch", "delete-list"):
        list_name = _strip_quotes(rest)
        if not list_name:
            raise CommandValidationError(f"Please specify a list name: {USAGE[name]}")
        action = {"create": "create_list", "switch": "switch_list", "delete-list": "delete_list"}[name]
        return parse_intent({"action": action, "name": list_name})

    if name == "clear":
        return parse_intent({"action": "clear_list"})

    if name == "list":
        return parse_intent({"action": "list_todos"})

    positionals, flags = parse_args(rest)

    if name == "add":
        _check_flags(name, flags, TODO_FLAGS)
        title = " ".join(positionals).strip()
        if not title:
            raise CommandValidationError(f"Please specify a todo title: {USAGE[name]}")
        payload = {"action": "add_todo", "title": title}
        payload.update(_todo_fields(flags, today))
        return parse_intent(payload)

    if name in ("complete", "uncomplete", "delete"):
        _check_flags(name, flags, ())
        if len(positionals) != 1:
            raise CommandValidationError(f"Usage: {USAGE[name]}")
        payload = {"action": f"{name}_todo"}
        payload.update(parse_reference(positionals[0]))
        return parse_intent(payload)

    if name == "edit":
        _check_flags(name, flags, EDIT_FLAGS)
        if len(positionals) != 1:
            raise CommandValidationError(f"Usage: {USAGE[name]}")
        payload = {"action": "edit_todo"}
        payload.update(parse_reference(positionals[0]))
        if "title" in flags:
            payload["title"] = flags["title"]
        payload.update(_todo_fields(flags, today))
        for field_name in _split(flags.get("clear", "")):
            key = _CLEARABLE.get(field_name.lower())
            if key is None:
                raise CommandValidationError(
                    f"Cannot clear '{field_name}' (clearable: description, priority, due, category, tag)"
                )
            payload[key] = None
        return parse_intent(payload)

    if name == "move":
        _check_flags(name, flags, ())
        if len(positionals) < 2:
            raise CommandValidationError(f"Usage: {USAGE[name]}")
        payload = {"action": "move_todo", "targetList": " ".join(positionals[1:])}
        payload.update(parse_reference(positionals[0]))
        return parse_intent(payload)

    if name == "filter":
        _check_flags(name, flags, FILTER_FLAGS)
        if positionals:
            raise CommandValidationError(f"Usage: {USAGE[name]}")
        criteria: Dict[str, Any] = {}
        for key, value in flags.items():
            if key.startswith("due_"):
                criteria[key] = _due(value, today)
            else:
                criteria[key] = value
        return parse_intent({"action": "list_todos", "filter": criteria})

    raise CommandValidationError(f"Unknown command '/{name}'. Use /help to see available commands.")


def parse_reference(token: str) -> Dict[str, Any]:
    """``2`` -> todoNumber, ``a1b2c3d4`` / ``{a1b2c3d4}`` -> shortId."""
    cleaned = normalize_short_id(token)
    if looks_like_short_id(token):
        return {"shortId": cleaned}
    if cleaned.isdigit():
        return {"todoNumber": int(cleaned)}
    raise CommandValidationError(
        f"Invalid todo reference '{token}'. Use the number or the short id from /list."
    )


def _todo_fields(flags: Dict[str, str], today: Optional[date]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if "priority" in flags:
        fields["priority"] = flags["priority"]
    if "due" in flags:
        fields["dueDate"] = _due(flags["due"], today)
    if "category" in flags:
        fields["categories"] = _split(flags["category"])
    if "tag" in flags:
        fields["tags"] = _split(flags["tag"])
    if "description" in flags:
        fields["description"] = flags["description"]
    return fields


def _due(text: str, today: Optional[date]) -> date:
    try:
        return parse_due_date(text, today=today)
    except ValueError as exc:
        raise CommandValidationError(str(exc)) from exc


def _check_flags(command: str, flags: Dict[str, str], allowed) -> None:
    unknown = sorted(set(flags) - set(allowed))
    if unknown:
        raise CommandValidationError(
            f"Unknown option(s) for /{command}: {', '.join('--' + f for f in unknown)}. "
            f"Usage: {USAGE[command]}"
        )


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _strip_quotes(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1]
    return text.strip()
