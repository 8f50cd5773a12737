"""
Slash-command parser tests, plus a scripted REPL run through TodoCLI.

Run: python test_commands.py
"""
import io
import os
import tempfile
from contextlib import redirect_stdout
from datetime import date

from backend.storage import SQLiteTodoStore
from todogpt.assistant import TodoAssistant
from todogpt.cli import TodoCLI
from todogpt.commands import ReplCommand, parse_args, parse_reference, parse_slash_command
from todogpt.engine import CommandEngine
from todogpt.errors import CommandValidationError
from todogpt.intents import AddTodo, EditTodo, ListTodos, MoveTodo, parse_intent
from todogpt.schema import TodoItem
from todogpt.session import Session

TODAY = date(2026, 1, 14)


def _rejected(line, fragment=None):
    try:
        parse_slash_command(line, today=TODAY)
    except CommandValidationError as e:
        if fragment:
            assert fragment in str(e), f"'{fragment}' not in '{e}'"
        return
    raise AssertionError(f"'{line}' should have been rejected")


def test_parse_args():
    print("\n── Test: parse_args ──")

    positionals, flags = parse_args('"Buy milk" --priority high --category "home, errands" later')
    assert positionals == ["Buy milk", "later"]
    assert flags == {"priority": "high", "category": "home, errands"}
    print("  ✓ Quoted words and --flag values split correctly")


def test_add_and_references():
    print("\n── Test: /add and references ──")

    intent = parse_slash_command('/add "Buy milk" --priority high --due tomorrow --category home,errands', today=TODAY)
    assert isinstance(intent, AddTodo)
    assert (intent.title, intent.priority, intent.due_date) == ("Buy milk", "high", date(2026, 1, 15))
    assert intent.categories == ["home", "errands"]

    intent = parse_slash_command("/add Call the dentist --due 2026-02-01", today=TODAY)
    assert intent.title == "Call the dentist" and intent.due_date == date(2026, 2, 1)
    print("  ✓ /add with flags and natural due dates")

    assert parse_reference("2") == {"todoNumber": 2}
    assert parse_reference("{A1B2C3D4}") == {"shortId": "a1b2c3d4"}
    assert parse_reference("#a1b2c3d4") == {"shortId": "a1b2c3d4"}
    ref = parse_slash_command("/complete a1b2c3d4").reference()
    assert ref.short_id == "a1b2c3d4" and ref.position is None
    assert parse_slash_command("/delete 3").reference().position == 3
    print("  ✓ Positions and short ids told apart")

    _rejected("/add", "title")
    _rejected("/add milk --due someday", "due date")
    _rejected("/add milk --colour red", "--colour")
    _rejected("/complete milk", "Invalid todo reference")
    _rejected("/complete", "Usage")
    _rejected("/frobnicate", "Unknown command")
    print("  ✓ Bad input rejected with a usable message")


def test_edit_move_filter_lists():
    print("\n── Test: /edit /move /filter and list commands ──")

    intent = parse_slash_command("/edit 2 --title \"Walk the dog\" --clear due,category", today=TODAY)
    assert isinstance(intent, EditTodo)
    assert intent.changes() == {"title": "Walk the dog", "due_date": None, "categories": []}
    _rejected("/edit 2", "at least one field")
    _rejected("/edit 2 --clear title", "Cannot clear")
    print("  ✓ /edit sets and clears fields")

    intent = parse_slash_command('/move a1b2c3d4 "Side projects"')
    assert isinstance(intent, MoveTodo) and intent.target_list == "Side projects"
    print("  ✓ /move")

    intent = parse_slash_command("/filter --status active --priority high --due_before friday", today=TODAY)
    assert isinstance(intent, ListTodos)
    assert intent.filter.status == "incomplete" and intent.filter.due_before == date(2026, 1, 16)
    assert isinstance(parse_slash_command("/list"), ListTodos)
    print("  ✓ /filter and /list")

    assert parse_slash_command('/create "Side projects"').name == "Side projects"
    assert parse_slash_command("/switch Work").action == "switch_list"
    assert parse_slash_command("/delete-list Work").action == "delete_list"
    assert parse_slash_command("/clear").action == "clear_list"
    assert parse_slash_command("/chat what is due?") == ReplCommand(name="chat", argument="what is due?")
    _rejected("/create", "list name")
    print("  ✓ List and REPL commands")


def test_scripted_repl():
    print("\n── Test: Scripted REPL session ──")

    store = SQLiteTodoStore(os.path.join(tempfile.mkdtemp(prefix="todogpt_"), "data.db"))
    session = Session.open(store)
    assistant = TodoAssistant()
    assistant.client = None  # no AI, whatever the environment has
    cli = TodoCLI(session, CommandEngine(session), assistant)

    for line in ("/add Buy milk", "/add Walk dog", "/add Finish report", "/list", "/delete 2",
                 "/complete 99", "/history", "/lists", "/help"):
        assert cli.handle_line(line) is True
    assert [t.title for t in session.current_list.todos] == ["Buy milk", "Finish report"]
    assert list(cli.history)[-1] == "/help"
    print("  ✓ Commands applied; errors reported without ending the loop")

    turns = session.context.recent_context()
    assert turns[-1].speaker == "assistant"
    assert any("Todo number 99 not found" in t.text for t in turns)
    print("  ✓ Each turn recorded in the conversation context")

    assert cli.handle_line("buy bread") is True
    assert cli.handle_line("/exit") is False
    print("  ✓ Free text without AI is reported, /exit stops the loop")


class ScriptedAssistant:
    """Assistant that always answers with the same payload."""

    model = "scripted"

    def __init__(self, payload):
        self.payload = payload

    def is_configured(self):
        return True

    def parse(self, text, session):
        return parse_intent(self.payload)


def _scripted_cli(payload, answers):
    store = SQLiteTodoStore(os.path.join(tempfile.mkdtemp(prefix="todogpt_"), "data.db"))
    session = Session.open(store)

    def input_fn(prompt):
        answer = answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer

    return TodoCLI(session, CommandEngine(session), ScriptedAssistant(payload), input_fn=input_fn)


def test_sequence_confirmation_interrupted():
    print("\n── Test: Sequence confirmation interrupted ──")

    payload = {"action": "command_sequence", "commands": [{"action": "clear_list"}]}
    for interruption in (EOFError(), KeyboardInterrupt()):
        cli = _scripted_cli(payload, [interruption])
        cli.session.add_todo(TodoItem(title="keep me"))

        out = io.StringIO()
        with redirect_stdout(out):
            assert cli.handle_line("clear everything") is True
        assert [t.title for t in cli.session.current_list.todos] == ["keep me"]
        assert "Command sequence cancelled" in out.getvalue()
        assert cli.session.context.recent_context()[-1].text == "Command sequence cancelled"
    print("  ✓ EOF / Ctrl-C at the prompt cancels the batch and keeps the loop alive")


def test_aborted_sequence_shows_applied_steps():
    print("\n── Test: Aborted sequence output ──")

    payload = {"action": "command_sequence", "commands": [
        {"action": "add_todo", "title": "Book flights"},
        {"action": "delete_todo", "shortId": "00000000"},
        {"action": "add_todo", "title": "Never added"},
    ]}
    cli = _scripted_cli(payload, ["y"])

    out = io.StringIO()
    with redirect_stdout(out):
        assert cli.handle_line("plan the trip") is True
    text = out.getvalue()
    assert 'Added "Book flights"' in text
    assert text.index('Added "Book flights"') < text.index("Step 2/3 failed")
    assert [t.title for t in cli.session.current_list.todos] == ["Book flights"]
    print("  ✓ Steps that stayed applied are printed before the failure")


def main():
    print("=" * 60)
    print("  SLASH COMMAND TESTS")
    print("=" * 60)
    test_parse_args()
    test_add_and_references()
    test_edit_move_filter_lists()
    test_scripted_repl()
    test_sequence_confirmation_interrupted()
    test_aborted_sequence_shows_applied_steps()
    print("\n  ✓ ALL TESTS PASSED")


if __name__ == "__main__":
    main()
