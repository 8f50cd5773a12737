"""
session.py

Everything one interactive run needs: the loaded lists, which one is
current, the conversation window and the store. One Session is created at
start-up and handed to the engine, the assistant and the CLI.

Every mutation is written to the store first; the in-memory lists only
change once that write returned, so a PersistenceError leaves memory exactly
as it was.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from todogpt.config import config
from todogpt.context import ConversationContext
from todogpt.errors import CommandValidationError
from todogpt.schema import TodoItem, TodoList


class Session:
    def __init__(self, store, context: Optional[ConversationContext] = None):
        self.store = store
        self.context = context or ConversationContext(config['context_turns'])
        self.lists: List[TodoList] = []
        self.current_list_id: Optional[str] = None

    @classmethod
    def open(cls, store, context: Optional[ConversationContext] = None,
             default_list: str = "Personal") -> "Session":
        """Initialise the store, load every list and make sure one exists."""
        session = cls(store, context)
        store.init_db()
        session.lists = store.load_lists()
        if session.lists:
            session.current_list_id = session.lists[0].id
        else:
            session.create_list(default_list)
        return session

    # ── lists ──

    @property
    def current_list(self) -> TodoList:
        for todo_list in self.lists:
            if todo_list.id == self.current_list_id:
                return todo_list
        raise CommandValidationError("No current list selected. Use /create to create a list first.")

    def find_list(self, name: str) -> Optional[TodoList]:
        wanted = (name or "").strip().lower()
        for todo_list in self.lists:
            if todo_list.name.lower() == wanted:
                return todo_list
        return None

    def require_list(self, name: str) -> TodoList:
        todo_list = self.find_list(name)
        if todo_list is None:
            raise CommandValidationError(
                f"List '{name}' not found. Use /lists to see available lists."
            )
        return todo_list

    def create_list(self, name: str) -> TodoList:
        name = (name or "").strip()
        if not name:
            raise CommandValidationError("List name must not be empty")
        if self.find_list(name):
            raise CommandValidationError(f"List '{name}' already exists!")

        todo_list = TodoList(name=name)
        self.store.create_list(todo_list)
        self.lists.append(todo_list)
        if self.current_list_id is None:
            self.current_list_id = todo_list.id
        return todo_list

    def switch_list(self, name: str) -> TodoList:
        todo_list = self.require_list(name)
        self.current_list_id = todo_list.id
        return todo_list

    def delete_list(self, name: str) -> TodoList:
        todo_list = self.require_list(name)
        if len(self.lists) == 1:
            raise CommandValidationError("Cannot delete the only list. Create another list first.")

        self.store.delete_list(todo_list.id)
        self.lists.remove(todo_list)
        if self.current_list_id == todo_list.id:
            self.current_list_id = self.lists[0].id
        return todo_list

    # ── todos (always in the current list) ──

    def add_todo(self, todo: TodoItem) -> TodoItem:
        todo_list = self.current_list
        self.store.persist_create(todo, todo_list.id)
        todo_list.todos.append(todo)
        todo_list.touch()
        return todo

    def add_todos(self, todos: List[TodoItem]) -> List[TodoItem]:
        """Append several todos; they are all saved together or not at all."""
        todo_list = self.current_list
        self.store.persist_create_many(todos, todo_list.id)
        todo_list.todos.extend(todos)
        todo_list.touch()
        return todos

    def update_todo(self, todo: TodoItem, changes: Dict[str, Any]) -> TodoItem:
        """Apply ``changes`` (field -> new value) to a live todo."""
        updated = todo.model_copy(update=dict(changes, updated_at=datetime.now()))
        self.store.persist_update(updated)
        for name, value in changes.items():
            setattr(todo, name, value)
        todo.updated_at = updated.updated_at
        return todo

    def remove_todo(self, todo: TodoItem) -> TodoItem:
        todo_list = self.current_list
        self.store.persist_delete(todo.id)
        todo_list.todos = [item for item in todo_list.todos if item.id != todo.id]
        todo_list.touch()
        return todo

    def clear_current(self) -> int:
        todo_list = self.current_list
        count = len(todo_list.todos)
        self.store.persist_clear(todo_list.id)
        todo_list.todos = []
        todo_list.touch()
        return count

    def move_todo(self, todo: TodoItem, target: TodoList) -> TodoItem:
        source = self.current_list
        if target.id == source.id:
            raise CommandValidationError(f"Todo is already in list '{target.name}'")

        moved_at = datetime.now()
        self.store.persist_move(todo.model_copy(update={"updated_at": moved_at}), target.id)
        source.todos = [item for item in source.todos if item.id != todo.id]
        todo.updated_at = moved_at
        target.todos.append(todo)
        source.touch()
        target.touch()
        return todo
