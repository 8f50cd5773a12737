"""
intents.py

Typed commands. Whatever produced a command (a slash command or the LLM) it
is decoded here into one variant of a tagged union keyed on ``action`` and
validated before the engine sees it.

Field names follow the JSON the LLM is asked to produce (``dueDate``,
``shortId``, ``todoNumber``, ``confirmTitle``); the snake_case names are
accepted as well.
"""

from __future__ import annotations
from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from todogpt.config import config
from todogpt.dates import parse_iso_date
from todogpt.errors import CommandValidationError
from todogpt.resolver import Reference
from todogpt.schema import Priority, TodoItem

MAX_SEQUENCE_LENGTH = config['max_sequence_length']

EDITABLE_FIELDS = ("title", "description", "priority", "due_date", "categories", "tags")


class _Intent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict with only the fields that were actually given."""
        payload = self.model_dump(by_alias=True, exclude_unset=True, mode="json")
        payload["action"] = getattr(self, "action")
        return payload


# ── Shared field validation ───────────────────────────────────────────────────

def _clean_priority(v):
    if isinstance(v, str):
        v = v.strip().lower()
        return v or None
    return v


def _clean_due_date(v):
    if v is None or isinstance(v, date):
        return v
    if isinstance(v, str):
        if not v.strip():
            return None
        return parse_iso_date(v)
    raise ValueError("Due date must be a YYYY-MM-DD string")


def _clean_labels(v):
    if v is None:
        return None
    if isinstance(v, str):
        v = [part for part in v.split(",")]
    if not isinstance(v, list):
        raise ValueError("Expected a list of strings")
    cleaned = []
    for item in v:
        text = str(item).strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


class _TodoFields(_Intent):
    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = Field(default=None, alias="dueDate")
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v):
        return _clean_priority(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v):
        return _clean_due_date(v)

    @field_validator("categories", "tags", mode="before")
    @classmethod
    def clean_labels(cls, v):
        return _clean_labels(v)

    @field_validator("description", mode="before")
    @classmethod
    def blank_description_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class TodoDraft(_TodoFields):
    """A todo that does not exist yet."""
    title: str

    @field_validator("title")
    @classmethod
    def title_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Todo title must not be empty")
        return v

    def to_todo(self) -> TodoItem:
        return TodoItem(
            title=self.title,
            description=self.description,
            priority=self.priority,
            due_date=self.due_date,
            categories=self.categories or [],
            tags=self.tags or [],
        )


class TodoReference(_Intent):
    short_id: Optional[str] = Field(default=None, alias="shortId")
    todo_number: Optional[int] = Field(default=None, alias="todoNumber")
    confirm_title: Optional[str] = Field(default=None, alias="confirmTitle")

    def reference(self) -> Reference:
        return Reference(
            short_id=self.short_id or None,
            position=self.todo_number,
            expected_title=self.confirm_title or None,
        )


# ── Todo commands ─────────────────────────────────────────────────────────────

class AddTodo(TodoDraft):
    action: Literal["add_todo"] = "add_todo"


class AddMultipleTodos(_Intent):
    action: Literal["add_multiple_todos"] = "add_multiple_todos"
    items: List[TodoDraft] = Field(
        ..., min_length=1, validation_alias=AliasChoices("items", "todos")
    )


class CompleteTodo(TodoReference):
    action: Literal["complete_todo"] = "complete_todo"


class UncompleteTodo(TodoReference):
    action: Literal["uncomplete_todo"] = "uncomplete_todo"


class DeleteTodo(TodoReference):
    action: Literal["delete_todo"] = "delete_todo"


class EditTodo(TodoReference, _TodoFields):
    """
    Edit an existing todo. A field left out is unchanged; a field given as
    null is cleared. The title can be changed but never cleared.
    """
    action: Literal["edit_todo"] = "edit_todo"
    title: Optional[str] = None

    @model_validator(mode="after")
    def check_changes(self) -> "EditTodo":
        if not self.changed_fields():
            raise ValueError("Edit todo must have at least one field to edit")
        if "title" in self.model_fields_set:
            if self.title is None or not self.title.strip():
                raise ValueError("Todo title cannot be cleared")
            self.title = self.title.strip()
        return self

    def changed_fields(self) -> List[str]:
        return [name for name in EDITABLE_FIELDS if name in self.model_fields_set]

    def changes(self) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        for name in self.changed_fields():
            value = getattr(self, name)
            if name in ("categories", "tags") and value is None:
                value = []
            changes[name] = value
        return changes


class MoveTodo(TodoReference):
    """Move a todo, keeping its id, from the current list to another one."""
    action: Literal["move_todo"] = "move_todo"
    target_list: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("targetList", "target_list", "list")
    )


class TodoFilter(_Intent):
    status: Optional[Literal["all", "completed", "incomplete"]] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    due_on: Optional[date] = Field(default=None, alias="dueOn")
    due_before: Optional[date] = Field(default=None, alias="dueBefore")
    due_after: Optional[date] = Field(default=None, alias="dueAfter")
    query: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if v in ("active", "pending", "open"):
                return "incomplete"
            if v in ("done", "complete"):
                return "completed"
            return v or None
        return v

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v):
        return _clean_priority(v)

    @field_validator("due_on", "due_before", "due_after", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return _clean_due_date(v)

    def matches(self, todo: TodoItem) -> bool:
        if self.status == "completed" and not todo.completed:
            return False
        if self.status == "incomplete" and todo.completed:
            return False
        if self.priority and todo.priority != self.priority:
            return False
        if self.category:
            wanted = self.category.lower()
            if wanted not in (c.lower() for c in todo.categories):
                return False
        if self.due_on and todo.due_date != self.due_on:
            return False
        if self.due_before and (todo.due_date is None or todo.due_date >= self.due_before):
            return False
        if self.due_after and (todo.due_date is None or todo.due_date <= self.due_after):
            return False
        if self.query:
            needle = self.query.lower()
            haystack = " ".join([todo.title, todo.description or ""] + todo.tags).lower()
            if needle not in haystack:
                return False
        return True

    def describe(self) -> List[str]:
        parts = []
        if self.status and self.status != "all":
            parts.append("active" if self.status == "incomplete" else "completed")
        if self.priority:
            parts.append(f"{self.priority} priority")
        if self.category:
            parts.append(f"category: {self.category}")
        if self.due_on:
            parts.append(f"due on {self.due_on.isoformat()}")
        if self.due_before:
            parts.append(f"due before {self.due_before.isoformat()}")
        if self.due_after:
            parts.append(f"due after {self.due_after.isoformat()}")
        if self.query:
            parts.append(f'matching "{self.query}"')
        return parts


class ListTodos(_Intent):
    action: Literal["list_todos"] = "list_todos"
    filter: Optional[TodoFilter] = None


# ── List commands ─────────────────────────────────────────────────────────────

class _NamedList(_Intent):
    name: str

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("List name must not be empty")
        return v


class CreateList(_NamedList):
    action: Literal["create_list"] = "create_list"


class SwitchList(_NamedList):
    action: Literal["switch_list"] = "switch_list"


class DeleteList(_NamedList):
    action: Literal["delete_list"] = "delete_list"


class ClearList(_Intent):
    action: Literal["clear_list"] = "clear_list"


# ── Batches and non-command results ───────────────────────────────────────────

class CommandSequence(_Intent):
    """
    Ordered batch. Steps are kept as raw payloads and validated one at a
    time when the engine reaches them, so a bad step only stops the batch
    at that point.
    """
    action: Literal["command_sequence"] = "command_sequence"
    description: Optional[str] = None
    commands: List[Dict[str, Any]] = Field(..., min_length=1)

    @field_validator("commands")
    @classmethod
    def check_steps(cls, v: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if len(v) > MAX_SEQUENCE_LENGTH:
            raise ValueError(
                f"A command sequence holds at most {MAX_SEQUENCE_LENGTH} commands, got {len(v)}"
            )
        for step in v:
            if step.get("action") == "command_sequence":
                raise ValueError("Command sequences cannot be nested")
        return v

    @classmethod
    def of(cls, *steps: "_Intent", description: Optional[str] = None) -> "CommandSequence":
        return cls(description=description, commands=[step.to_payload() for step in steps])


class Conversational(_Intent):
    """Plain-text answer from chat mode; nothing to execute."""
    action: Literal["conversational"] = "conversational"
    message: str


class UnknownIntent(_Intent):
    action: Literal["unknown"] = "unknown"
    original_input: Optional[str] = Field(default=None, alias="originalInput")
    error: Optional[str] = None


Intent = Annotated[
    Union[
        AddTodo,
        AddMultipleTodos,
        CompleteTodo,
        UncompleteTodo,
        DeleteTodo,
        EditTodo,
        MoveTodo,
        ListTodos,
        CreateList,
        SwitchList,
        DeleteList,
        ClearList,
        CommandSequence,
        Conversational,
        UnknownIntent,
    ],
    Field(discriminator="action"),
]

_INTENT_ADAPTER = TypeAdapter(Intent)

KNOWN_ACTIONS = (
    "add_todo", "add_multiple_todos", "complete_todo", "uncomplete_todo",
    "delete_todo", "edit_todo", "move_todo", "list_todos", "create_list",
    "switch_list", "delete_list", "clear_list", "command_sequence",
    "conversational", "unknown",
)


def _format_errors(exc: ValidationError) -> str:
    messages = []
    for err in exc.errors()[:3]:
        # First loc element is the union tag; drop it.
        loc = [str(part) for part in err.get("loc", ())[1:]]
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return "; ".join(messages)


def parse_intent(payload: Any) -> Intent:
    """
    Validate an untrusted payload (dict from the LLM, or already typed).

    Raises:
        CommandValidationError: unknown action, missing or malformed field.
    """
    if isinstance(payload, BaseModel):
        return payload
    if not isinstance(payload, dict):
        raise CommandValidationError(f"Command must be a JSON object, got {type(payload).__name__}")
    action = payload.get("action")
    if not action:
        raise CommandValidationError("Command is missing its 'action'")
    if action not in KNOWN_ACTIONS:
        raise CommandValidationError(f"Unknown action '{action}'")
    try:
        return _INTENT_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise CommandValidationError(f"Invalid {action}: {_format_errors(exc)}") from exc
