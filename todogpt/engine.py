"""
engine.py

Applies validated intents to the session.

A single command either goes Received -> Validated -> Applied or is
Rejected with a TodoError before anything changes. A command sequence is
shown for confirmation first and then run strictly in order; the first
failing step stops it, earlier steps stay applied.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from todogpt.errors import BatchStepError, CommandValidationError, TodoError
from todogpt.intents import (
    AddMultipleTodos,
    AddTodo,
    ClearList,
    CommandSequence,
    CompleteTodo,
    CreateList,
    DeleteList,
    DeleteTodo,
    EditTodo,
    ListTodos,
    MoveTodo,
    SwitchList,
    TodoDraft,
    TodoReference,
    UncompleteTodo,
    parse_intent,
)
from todogpt.resolver import resolve
from todogpt.schema import TodoItem
from todogpt.session import Session

# Slash flag for each editable field.
_FLAG_NAMES = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "due_date": "due",
    "categories": "category",
    "tags": "tag",
}


@dataclass
class CommandResult:
    action: str
    message: str
    todo: Optional[TodoItem] = None
    todos: List[Tuple[int, TodoItem]] = field(default_factory=list)
    list_name: Optional[str] = None


@dataclass
class SequenceResult:
    confirmed: bool
    results: List[CommandResult] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return not self.confirmed


class CommandEngine:
    def __init__(self, session: Session):
        self.session = session
        self._handlers: Dict[str, Callable[[Any], CommandResult]] = {
            "add_todo": self._add_todo,
            "add_multiple_todos": self._add_multiple_todos,
            "complete_todo": self._complete_todo,
            "uncomplete_todo": self._uncomplete_todo,
            "delete_todo": self._delete_todo,
            "edit_todo": self._edit_todo,
            "move_todo": self._move_todo,
            "list_todos": self._list_todos,
            "create_list": self._create_list,
            "switch_list": self._switch_list,
            "delete_list": self._delete_list,
            "clear_list": self._clear_list,
        }

    # ── single commands ──

    def execute(self, intent) -> CommandResult:
        """
        Validate (if given a raw dict) and apply one command.

        Raises:
            CommandValidationError: malformed command, or one that is not
                executable on its own (sequence, conversational, unknown).
            ResolutionError: the todo reference did not resolve.
            PersistenceError: the store rejected the write; memory unchanged.
        """
        intent = parse_intent(intent)
        handler = self._handlers.get(intent.action)
        if handler is None:
            if intent.action == "command_sequence":
                raise CommandValidationError("Command sequences must go through execute_sequence()")
            raise CommandValidationError(f"'{intent.action}' is not an executable command")
        return handler(intent)

    def _resolve(self, intent: TodoReference) -> TodoItem:
        return resolve(self.session.current_list.todos, intent.reference())

    def _add_todo(self, intent: AddTodo) -> CommandResult:
        todo_list = self.session.current_list
        todo = self.session.add_todo(intent.to_todo())
        return CommandResult(
            action=intent.action,
            message=f"Added {_label(todo)} to {todo_list.name} list{_details(todo)}",
            todo=todo,
            list_name=todo_list.name,
        )

    def _add_multiple_todos(self, intent: AddMultipleTodos) -> CommandResult:
        todo_list = self.session.current_list
        added = self.session.add_todos([draft.to_todo() for draft in intent.items])
        rows = [(todo_list.position_of(todo), todo) for todo in added]
        return CommandResult(
            action=intent.action,
            message=f"Added {len(added)} todos to {todo_list.name} list",
            todos=rows,
            list_name=todo_list.name,
        )

    def _complete_todo(self, intent: CompleteTodo) -> CommandResult:
        return self._set_completed(intent, True)

    def _uncomplete_todo(self, intent: UncompleteTodo) -> CommandResult:
        return self._set_completed(intent, False)

    def _set_completed(self, intent: TodoReference, completed: bool) -> CommandResult:
        todo = self._resolve(intent)
        verb = "Completed" if completed else "Marked as incomplete"
        if todo.completed == completed:
            state = "completed" if completed else "incomplete"
            return CommandResult(
                action=intent.action,
                message=f"{_label(todo)} is already {state}",
                todo=todo,
                list_name=self.session.current_list.name,
            )
        self.session.update_todo(todo, {"completed": completed})
        return CommandResult(
            action=intent.action,
            message=f"{verb} {_label(todo)}",
            todo=todo,
            list_name=self.session.current_list.name,
        )

    def _delete_todo(self, intent: DeleteTodo) -> CommandResult:
        todo = self._resolve(intent)
        self.session.remove_todo(todo)
        return CommandResult(
            action=intent.action,
            message=f"Deleted {_label(todo)}",
            todo=todo,
            list_name=self.session.current_list.name,
        )

    def _edit_todo(self, intent: EditTodo) -> CommandResult:
        todo = self._resolve(intent)
        changes = intent.changes()
        self.session.update_todo(todo, changes)

        notes = []
        for name, value in changes.items():
            if value is None or value == []:
                notes.append(f"{name.replace('_', ' ')} cleared")
            elif name == "title":
                notes.append("title updated")
            elif name == "due_date":
                notes.append(f"due: {value.isoformat()}")
            elif name in ("categories", "tags"):
                notes.append(f"{name}: {', '.join(value)}")
            elif name == "description":
                notes.append("description updated")
            else:
                notes.append(f"{name}: {value}")
        return CommandResult(
            action=intent.action,
            message=f"Updated {_label(todo)} ({'; '.join(notes)})",
            todo=todo,
            list_name=self.session.current_list.name,
        )

    def _move_todo(self, intent: MoveTodo) -> CommandResult:
        target = self.session.require_list(intent.target_list)
        todo = self._resolve(intent)
        source = self.session.current_list
        self.session.move_todo(todo, target)
        return CommandResult(
            action=intent.action,
            message=f"Moved {_label(todo)} from {source.name} to {target.name}",
            todo=todo,
            list_name=target.name,
        )

    def _list_todos(self, intent: ListTodos) -> CommandResult:
        todo_list = self.session.current_list
        rows = [
            (position, todo)
            for position, todo in enumerate(todo_list.todos, start=1)
            if intent.filter is None or intent.filter.matches(todo)
        ]
        filters = intent.filter.describe() if intent.filter else []
        filter_text = f" ({', '.join(filters)})" if filters else ""
        return CommandResult(
            action=intent.action,
            message=f"Todos in '{todo_list.name}' list{filter_text}:",
            todos=rows,
            list_name=todo_list.name,
        )

    def _create_list(self, intent: CreateList) -> CommandResult:
        todo_list = self.session.create_list(intent.name)
        return CommandResult(
            action=intent.action,
            message=f"Created list '{todo_list.name}'",
            list_name=todo_list.name,
        )

    def _switch_list(self, intent: SwitchList) -> CommandResult:
        todo_list = self.session.switch_list(intent.name)
        return CommandResult(
            action=intent.action,
            message=f"Switched to '{todo_list.name}' list",
            list_name=todo_list.name,
        )

    def _delete_list(self, intent: DeleteList) -> CommandResult:
        deleted = self.session.delete_list(intent.name)
        current = self.session.current_list
        return CommandResult(
            action=intent.action,
            message=f"Deleted list '{deleted.name}' ({len(deleted.todos)} todos). "
                    f"Current list: '{current.name}'",
            list_name=current.name,
        )

    def _clear_list(self, intent: ClearList) -> CommandResult:
        todo_list = self.session.current_list
        if not todo_list.todos:
            return CommandResult(
                action=intent.action,
                message=f"List '{todo_list.name}' is already empty.",
                list_name=todo_list.name,
            )
        count = self.session.clear_current()
        return CommandResult(
            action=intent.action,
            message=f"Cleared {count} todos from '{todo_list.name}'",
            list_name=todo_list.name,
        )

    # ── sequences ──

    def describe(self, intent) -> str:
        """Slash-command rendering of an intent (typed or raw payload)."""
        if isinstance(intent, dict):
            try:
                intent = parse_intent(intent)
            except CommandValidationError:
                return json.dumps(intent, default=str)

        action = intent.action
        if action in ("create_list", "switch_list", "delete_list"):
            verb = {"create_list": "create", "switch_list": "switch", "delete_list": "delete-list"}[action]
            return f'/{verb} "{intent.name}"'
        if action == "clear_list":
            return "/clear"
        if action == "add_todo":
            return f'/add "{intent.title}"' + _draft_flags(intent)
        if action == "add_multiple_todos":
            return "; ".join(f'/add "{draft.title}"' + _draft_flags(draft) for draft in intent.items)
        if action in ("complete_todo", "uncomplete_todo", "delete_todo"):
            verb = action.split("_")[0]
            return f"/{verb} {_reference_text(intent)}"
        if action == "edit_todo":
            parts = [f"/edit {_reference_text(intent)}"]
            for name, value in intent.changes().items():
                flag = _FLAG_NAMES[name]
                if value is None or value == []:
                    parts.append(f"--clear {flag}")
                else:
                    parts.append(f"--{flag} {_flag_value(value)}")
            return " ".join(parts)
        if action == "move_todo":
            return f'/move {_reference_text(intent)} "{intent.target_list}"'
        if action == "list_todos":
            if intent.filter is None:
                return "/list"
            return "/filter " + " ".join(
                f"--{name} {_flag_value(value)}"
                for name, value in intent.filter.model_dump(exclude_none=True).items()
            )
        if action == "command_sequence":
            return self.render_sequence(intent)
        return json.dumps(intent.to_payload(), default=str)

    def render_sequence(self, sequence: CommandSequence) -> str:
        lines = []
        if sequence.description:
            lines.append(sequence.description)
        for index, payload in enumerate(sequence.commands, start=1):
            lines.append(f"{index}. {self.describe(payload)}")
        return "\n".join(lines)

    def execute_sequence(self, sequence, confirm: Callable[[str], bool]) -> SequenceResult:
        """
        Show the whole batch to ``confirm`` and, if it says yes, run every
        step in order. Each step sees the state left by the steps before it.

        Raises:
            CommandValidationError: the sequence itself is malformed (nothing ran).
            BatchStepError: step N failed; steps 1..N-1 stay applied and the
                rest were not attempted.
        """
        sequence = parse_intent(sequence)
        if not isinstance(sequence, CommandSequence):
            raise CommandValidationError(f"Expected a command sequence, got '{sequence.action}'")

        if not confirm(self.render_sequence(sequence)):
            return SequenceResult(confirmed=False)

        results: List[CommandResult] = []
        total = len(sequence.commands)
        for step, payload in enumerate(sequence.commands, start=1):
            try:
                results.append(self.execute(payload))
            except TodoError as exc:
                raise BatchStepError(step, total, payload, exc, list(results)) from exc
        return SequenceResult(confirmed=True, results=results)


def _label(todo: TodoItem) -> str:
    return f'"{todo.title}" {{{todo.short_id}}}'


def _details(todo: TodoItem) -> str:
    text = ""
    if todo.priority:
        text += f" (priority: {todo.priority})"
    if todo.due_date:
        text += f" (due: {todo.due_date.isoformat()})"
    if todo.categories:
        text += f" (categories: {', '.join(todo.categories)})"
    return text


def _reference_text(intent: TodoReference) -> str:
    text = intent.short_id or (str(intent.todo_number) if intent.todo_number is not None else "?")
    if intent.confirm_title:
        text += f' ("{intent.confirm_title}")'
    return text


def _flag_value(value) -> str:
    if isinstance(value, list):
        value = ",".join(value)
    elif hasattr(value, "isoformat"):
        value = value.isoformat()
    value = str(value)
    return f'"{value}"' if " " in value else value


def _draft_flags(draft: TodoDraft) -> str:
    text = ""
    if draft.priority:
        text += f" --priority {draft.priority}"
    if draft.due_date:
        text += f" --due {draft.due_date.isoformat()}"
    if draft.categories:
        text += f" --category {_flag_value(draft.categories)}"
    if draft.tags:
        text += f" --tag {_flag_value(draft.tags)}"
    if draft.description:
        text += f" --description {_flag_value(draft.description)}"
    return text
