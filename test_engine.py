"""
Command engine tests against a real SQLite file in a temp directory.
Covers the end-to-end reference scenarios, batch abort semantics (P5),
intra-batch references, cancellation, and store failures.

Run: python test_engine.py
"""
import os
import sqlite3
import tempfile
from datetime import date

from backend.storage import SQLiteTodoStore
from todogpt.engine import CommandEngine
from todogpt.errors import (
    AmbiguousShortId,
    BatchStepError,
    CommandValidationError,
    ContentMismatch,
    OutOfRange,
    PersistenceError,
)
from todogpt.intents import AddTodo, CommandSequence, CompleteTodo, DeleteTodo, EditTodo
from todogpt.schema import TodoItem
from todogpt.session import Session


class FailingStore(SQLiteTodoStore):
    """Store whose todo writes fail once ``broken`` is set."""
    broken = False

    def _check(self, operation):
        if self.broken:
            raise PersistenceError(operation, OSError("disk full"))

    def persist_create(self, todo, list_id):
        self._check("save todo")
        super().persist_create(todo, list_id)

    def persist_update(self, todo):
        self._check("update todo")
        super().persist_update(todo)

    def persist_delete(self, todo_id):
        self._check("delete todo")
        super().persist_delete(todo_id)


class FlakyInsertStore(SQLiteTodoStore):
    """Store whose second row insert inside a write fails."""
    inserts = 0

    def _insert_todo(self, conn, todo, list_id):
        self.inserts += 1
        if self.inserts == 2:
            raise sqlite3.OperationalError("disk full")
        super()._insert_todo(conn, todo, list_id)


def _engine(store_cls=SQLiteTodoStore):
    store = store_cls(os.path.join(tempfile.mkdtemp(prefix="todogpt_"), "data.db"))
    session = Session.open(store)
    return CommandEngine(session)


def _titles(engine):
    return [t.title for t in engine.session.current_list.todos]


def _always(answer):
    shown = []

    def confirm(text):
        shown.append(text)
        return answer
    confirm.shown = shown
    return confirm


def test_scenario_a_delete_by_short_id():
    print("\n── Test: Scenario A (delete by short id) ──")

    engine = _engine()
    engine.execute({"action": "create_list", "name": "L"})
    engine.execute({"action": "switch_list", "name": "L"})
    ids = [engine.execute(AddTodo(title=t)).todo.short_id for t in ("Buy milk", "Walk dog", "Finish report")]

    result = engine.execute({"action": "delete_todo", "shortId": ids[1]})
    assert result.todo.title == "Walk dog"
    assert _titles(engine) == ["Buy milk", "Finish report"]
    print("  ✓ Deleted 'Walk dog'; 'Buy milk', 'Finish report' remain in order")

    reloaded = Session.open(engine.session.store)
    reloaded.switch_list("L")
    assert [t.title for t in reloaded.current_list.todos] == ["Buy milk", "Finish report"]
    print("  ✓ Same state after reloading from disk")


def test_scenario_b_reference_survives_inserts():
    print("\n── Test: Scenario B (reference survives inserts) ──")

    engine = _engine()
    ids = [engine.execute(AddTodo(title=f"task {i}")).todo.short_id for i in range(1, 6)]
    engine.execute(AddTodo(title="later 1"))
    engine.execute(AddTodo(title="later 2"))
    engine.execute(DeleteTodo(todo_number=1))

    result = engine.execute(CompleteTodo(short_id=ids[2], confirm_title="task 3"))
    assert result.todo.title == "task 3" and result.todo.completed
    print("  ✓ Original 3rd todo still found by its short id")


def test_scenario_c_ambiguous_prefix_no_mutation():
    print("\n── Test: Scenario C (ambiguous prefix) ──")

    engine = _engine()
    session = engine.session
    session.add_todo(TodoItem(id="deadbeef-0000-4000-8000-000000000001", title="first"))
    session.add_todo(TodoItem(id="deadbeef-0000-4000-8000-000000000002", title="second"))
    before = [t.model_dump() for t in session.current_list.todos]

    try:
        engine.execute({"action": "delete_todo", "shortId": "deadbeef"})
        assert False, "ambiguous prefix must not resolve"
    except AmbiguousShortId as e:
        assert e.count == 2
    assert [t.model_dump() for t in session.current_list.todos] == before
    print("  ✓ AmbiguousShortId raised, nothing deleted")


def test_complete_edit_and_content_guard():
    print("\n── Test: Complete / edit / content guard ──")

    engine = _engine()
    milk = engine.execute(AddTodo(title="Buy milk", priority="high", due_date=date(2026, 1, 5))).todo
    dog = engine.execute(AddTodo(title="Walk dog")).todo

    try:
        engine.execute(CompleteTodo(short_id=dog.short_id, confirm_title="milk"))
        assert False, "title mismatch should reject"
    except ContentMismatch:
        pass
    assert not dog.completed
    print("  ✓ ContentMismatch leaves the todo untouched")

    stamp = milk.updated_at
    engine.execute(EditTodo(short_id=milk.short_id, due_date=None))
    assert milk.due_date is None and milk.priority == "high" and milk.title == "Buy milk"
    assert milk.updated_at >= stamp
    engine.execute({"action": "edit_todo", "shortId": milk.short_id, "title": "Buy oat milk", "tags": ["dairy"]})
    assert (milk.title, milk.tags, milk.priority) == ("Buy oat milk", ["dairy"], "high")
    print("  ✓ Cleared field cleared, unset fields unchanged")

    again = engine.execute(CompleteTodo(todo_number=1))
    assert again.todo is milk and milk.completed
    assert "already" in engine.execute(CompleteTodo(todo_number=1)).message
    engine.execute({"action": "uncomplete_todo", "shortId": milk.short_id})
    assert not milk.completed
    print("  ✓ Complete / uncomplete toggle")

    try:
        engine.execute(DeleteTodo(todo_number=9))
        assert False
    except OutOfRange as e:
        assert e.length == 2
    print("  ✓ Out-of-range position rejected")


def test_lists_move_filter_clear():
    print("\n── Test: Lists, move, filter, clear ──")

    engine = _engine()
    a = engine.execute(AddTodo(title="a", priority="high")).todo
    engine.execute(AddTodo(title="b", priority="low"))
    engine.execute({"action": "create_list", "name": "Work"})
    assert engine.session.current_list.name == "Personal", "create_list does not switch"

    try:
        engine.execute({"action": "create_list", "name": "work"})
        assert False, "list names are case-insensitive"
    except CommandValidationError:
        pass

    result = engine.execute({"action": "move_todo", "shortId": a.short_id, "targetList": "work"})
    assert result.list_name == "Work"
    assert _titles(engine) == ["b"]
    engine.execute({"action": "switch_list", "name": "WORK"})
    assert [t.id for t in engine.session.current_list.todos] == [a.id]
    print("  ✓ Todo moved with the same id")

    engine.execute({"action": "switch_list", "name": "Personal"})
    engine.execute(AddTodo(title="c", priority="low"))
    listing = engine.execute({"action": "list_todos", "filter": {"priority": "low"}})
    assert [(pos, t.title) for pos, t in listing.todos] == [(1, "b"), (2, "c")]
    assert "low priority" in listing.message
    print("  ✓ Filtered listing keeps real positions")

    assert "Cleared 2" in engine.execute({"action": "clear_list"}).message
    assert _titles(engine) == []
    assert "already empty" in engine.execute({"action": "clear_list"}).message
    print("  ✓ Clear list")

    engine.execute({"action": "delete_list", "name": "Personal"})
    assert engine.session.current_list.name == "Work"
    try:
        engine.execute({"action": "delete_list", "name": "Work"})
        assert False, "cannot delete the only list"
    except CommandValidationError:
        pass
    print("  ✓ Deleting the current list switches to the remaining one; last list protected")


def test_batch_aborts_on_failing_step():
    """P5: step 2 invalid -> only step 1 applied, step 3 never attempted."""
    print("\n── Test: Batch abort (P5) ──")

    engine = _engine()
    seq = {
        "action": "command_sequence",
        "commands": [
            {"action": "add_todo", "title": "first"},
            {"action": "add_todo", "priority": "high"},
            {"action": "add_todo", "title": "third"},
        ],
    }
    try:
        engine.execute_sequence(seq, _always(True))
        assert False, "step 2 should fail"
    except BatchStepError as e:
        assert (e.step, e.total) == (2, 3)
        assert isinstance(e.cause, CommandValidationError)
        assert len(e.completed) == 1
        assert "Step 2/3" in str(e) and "1 remaining" in str(e)
    assert _titles(engine) == ["first"]
    print("  ✓ Only step 1 applied, error names step 2")

    engine.execute(AddTodo(title="second"))
    seq = CommandSequence.of(
        CompleteTodo(todo_number=1),
        DeleteTodo(short_id="00000000"),
        DeleteTodo(todo_number=1),
    )
    try:
        engine.execute_sequence(seq, _always(True))
        assert False
    except BatchStepError as e:
        assert e.step == 2
    assert [(t.title, t.completed) for t in engine.session.current_list.todos] == [("first", True), ("second", False)]
    print("  ✓ Resolution failure mid-batch keeps earlier effects, skips the rest")


def test_batch_intra_references_and_cancel():
    print("\n── Test: Intra-batch references / cancel ──")

    engine = _engine()
    engine.execute(AddTodo(title="existing"))

    seq = {
        "action": "command_sequence",
        "description": "Set up a project list",
        "commands": [
            {"action": "create_list", "name": "Project"},
            {"action": "switch_list", "name": "Project"},
            {"action": "add_todo", "title": "draft plan"},
            {"action": "complete_todo", "todoNumber": 1, "confirmTitle": "draft"},
        ],
    }

    declined = _always(False)
    outcome = engine.execute_sequence(seq, declined)
    assert outcome.cancelled and outcome.results == []
    assert [l.name for l in engine.session.lists] == ["Personal"]
    assert "1. /create \"Project\"" in declined.shown[0]
    assert "Set up a project list" in declined.shown[0]
    print("  ✓ Declined batch applies nothing")

    outcome = engine.execute_sequence(seq, _always(True))
    assert outcome.confirmed and len(outcome.results) == 4
    project = engine.session.current_list
    assert project.name == "Project"
    assert [(t.title, t.completed) for t in project.todos] == [("draft plan", True)]
    print("  ✓ Later steps see lists and todos created by earlier steps")


def test_persistence_failure_leaves_memory_untouched():
    print("\n── Test: Persistence failure ──")

    engine = _engine(FailingStore)
    todo = engine.execute(AddTodo(title="keep me")).todo
    engine.session.store.broken = True

    for intent in (AddTodo(title="lost"),
                   CompleteTodo(short_id=todo.short_id),
                   EditTodo(short_id=todo.short_id, title="renamed"),
                   DeleteTodo(short_id=todo.short_id)):
        try:
            engine.execute(intent)
            assert False, f"{intent.action} should fail"
        except PersistenceError:
            pass

    assert _titles(engine) == ["keep me"]
    assert not todo.completed and todo.title == "keep me"
    print("  ✓ Failed writes never change the in-memory list")


def test_add_multiple_is_all_or_nothing():
    print("\n── Test: add_multiple_todos write failure ──")

    engine = _engine(FlakyInsertStore)
    try:
        engine.execute({"action": "add_multiple_todos",
                        "todos": [{"title": "a"}, {"title": "b"}, {"title": "c"}]})
        assert False, "second insert should fail"
    except PersistenceError as e:
        assert "disk full" in str(e)

    assert _titles(engine) == []
    saved = engine.session.store.load_lists()
    assert [t.title for l in saved for t in l.todos] == []
    print("  ✓ Failed batch insert leaves memory and database empty")

    engine.session.store.inserts = 10
    result = engine.execute({"action": "add_multiple_todos", "todos": [{"title": "a"}, {"title": "b"}]})
    assert _titles(engine) == ["a", "b"]
    assert [pos for pos, _ in result.todos] == [1, 2]
    assert [t.title for t in engine.session.store.load_lists()[0].todos] == ["a", "b"]
    print("  ✓ Successful batch insert keeps order on disk")


def test_rejects_non_executable():
    print("\n── Test: Non-executable intents ──")

    engine = _engine()
    for payload in ({"action": "conversational", "message": "hi"},
                    {"action": "unknown"},
                    {"action": "command_sequence", "commands": [{"action": "clear_list"}]}):
        try:
            engine.execute(payload)
            assert False
        except CommandValidationError:
            pass
    print("  ✓ conversational / unknown / sequences rejected by execute()")

    assert engine.describe({"action": "edit_todo", "shortId": "a1b2c3d4", "dueDate": None, "priority": "low"}) \
        == "/edit a1b2c3d4 --priority low --clear due"
    assert engine.describe({"action": "bogus"}) == '{"action": "bogus"}'
    print("  ✓ describe() renders slash form, falls back to JSON")


def main():
    print("=" * 60)
    print("  COMMAND ENGINE TESTS")
    print("=" * 60)
    test_scenario_a_delete_by_short_id()
    test_scenario_b_reference_survives_inserts()
    test_scenario_c_ambiguous_prefix_no_mutation()
    test_complete_edit_and_content_guard()
    test_lists_move_filter_clear()
    test_batch_aborts_on_failing_step()
    test_batch_intra_references_and_cancel()
    test_persistence_failure_leaves_memory_untouched()
    test_add_multiple_is_all_or_nothing()
    test_rejects_non_executable()
    print("\n  ✓ ALL TESTS PASSED")


if __name__ == "__main__":
    main()
