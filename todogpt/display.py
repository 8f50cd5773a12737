# todogpt/display.py

from typing import Iterable, List, Optional, Tuple

from todogpt.schema import TodoItem, TodoList


# ANSI Escape codes for pretty terminal colors
class Colors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'


PRIORITY_ICONS = {"high": "🔴", "medium": "🟡", "low": "🟢"}


def format_todo(todo: TodoItem, position: Optional[int] = None) -> str:
    """One listing row: ``2. 🔴 ○ Walk dog {a1b2c3d4} (due: 2026-01-02) [home]``."""
    icon = "✓" if todo.completed else "○"
    text = f"{icon} {todo.title} {{{todo.short_id}}}"

    priority_icon = PRIORITY_ICONS.get(todo.priority or "")
    if priority_icon:
        text = f"{priority_icon} {text}"
    if todo.due_date:
        text += f" (due: {todo.due_date.isoformat()})"
    if todo.categories:
        text += f" [{', '.join(todo.categories)}]"
    if todo.tags:
        text += " " + " ".join(f"#{tag}" for tag in todo.tags)
    if todo.description:
        text += f" - {todo.description}"

    if position is not None:
        text = f"{position}. {text}"
    return text


def format_rows(rows: Iterable[Tuple[int, TodoItem]]) -> List[str]:
    lines = [f"  {format_todo(todo, position)}" for position, todo in rows]
    return lines or ["  (no todos match the criteria)"]


def format_lists(lists: List[TodoList], current_id: Optional[str]) -> List[str]:
    lines = []
    for todo_list in lists:
        done = sum(1 for todo in todo_list.todos if todo.completed)
        marker = "→" if todo_list.id == current_id else " "
        lines.append(f"  {marker} {todo_list.name} ({done}/{len(todo_list.todos)} completed)")
    return lines or ["  (no lists yet)"]


def success(message: str) -> str:
    return f"{Colors.OKGREEN}✓ {message}{Colors.ENDC}"


def failure(message: str) -> str:
    return f"{Colors.FAIL}✗ {message}{Colors.ENDC}"


def warning(message: str) -> str:
    return f"{Colors.WARNING}⚠ {message}{Colors.ENDC}"
