# todogpt/schema.py

from __future__ import annotations
from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from todogpt.identity import allocate, shorten


Priority = Literal["high", "medium", "low"]
Speaker = Literal["user", "assistant"]

PRIORITIES = ("high", "medium", "low")


class TodoItem(BaseModel):
    id: str = Field(default_factory=allocate, description="Full uuid, never changes")
    title: str = Field(..., description="Human readable todo title")
    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = Field(default=None, description="YYYY-MM-DD")
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    completed: bool = False

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be empty")
        return v

    @property
    def short_id(self) -> str:
        return shorten(self.id)

    def touch(self) -> None:
        """Refresh updated_at; called on every mutation."""
        self.updated_at = datetime.now()


class TodoList(BaseModel):
    id: str = Field(default_factory=allocate)
    name: str
    todos: List[TodoItem] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def position_of(self, todo: TodoItem) -> int:
        """1-based display position, looked up by identity."""
        for index, item in enumerate(self.todos, start=1):
            if item.id == todo.id:
                return index
        raise ValueError(f"Todo {todo.short_id} is not in list '{self.name}'")

    def touch(self) -> None:
        self.updated_at = datetime.now()


class ConversationTurn(BaseModel):
    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=datetime.now)

    def render(self) -> str:
        label = "User" if self.speaker == "user" else "Assistant"
        return f"{label}: {self.text}"
