"""
Assistant tests with a stub OpenAI client (no network, no API key needed):
prompt contents, JSON repair, single regeneration, fallbacks.

Run: python test_assistant.py
"""
import os
import tempfile
from datetime import date
from types import SimpleNamespace

from backend.storage import SQLiteTodoStore
from todogpt.assistant import TodoAssistant, _attempt_json_repair
from todogpt.engine import CommandEngine
from todogpt.intents import AddTodo, CommandSequence, CompleteTodo, Conversational, UnknownIntent
from todogpt.session import Session

TODAY = date(2026, 1, 14)


class StubClient:
    """Replays canned completions; an Exception in the list is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


def _session():
    store = SQLiteTodoStore(os.path.join(tempfile.mkdtemp(prefix="todogpt_"), "data.db"))
    return Session.open(store)


def _assistant(*replies):
    return TodoAssistant(client=StubClient(*replies), model="stub-model")


def test_json_repair():
    print("\n── Test: JSON Repair Logic ──")

    assert _attempt_json_repair('```json\n{"action": "clear_list"}\n```') == {"action": "clear_list"}
    print("  ✓ Strips markdown fences")
    assert _attempt_json_repair('{"action": "add_todo", "title": "x",}') == {"action": "add_todo", "title": "x"}
    print("  ✓ Fixes trailing commas")
    assert _attempt_json_repair('Sure! {"action": "list_todos"} Hope that helps') == {"action": "list_todos"}
    print("  ✓ Drops prose around the object")
    assert _attempt_json_repair("this is not json at all {") is None
    assert _attempt_json_repair("[1, 2]") is None
    print("  ✓ Irrecoverable or non-object JSON returns None")


def test_parse_prompt_and_call():
    print("\n── Test: parse() request ──")

    session = _session()
    milk = CommandEngine(session).execute(AddTodo(title="Buy milk")).todo
    session.context.record_user("add milk")
    session.context.record_assistant('Added "Buy milk"')

    assistant = _assistant('{"action": "add_todo", "title": "walk dog", "dueDate": "2026-01-15"}')
    intent = assistant.parse("walk the dog tomorrow", session, today=TODAY)
    assert isinstance(intent, AddTodo) and intent.due_date == date(2026, 1, 15)

    call = assistant.client.calls[0]
    system = call["messages"][0]["content"]
    assert call["model"] == "stub-model"
    assert call["response_format"] == {"type": "json_object"}
    assert call["temperature"] == 0.1 and call["max_tokens"] == 600
    assert "{%s}" % milk.short_id in system
    assert "confirmTitle" in system
    assert "User: add milk" in system
    assert "2026-01-14" in system
    assert call["messages"][1] == {"role": "user", "content": "walk the dog tomorrow"}
    print("  ✓ JSON mode, listing with short ids, history and today's date in the prompt")


def test_regeneration_and_fallbacks():
    print("\n── Test: Regeneration / fallbacks ──")

    session = _session()

    assistant = _assistant("```json\n{\"action\": \"clear_list\",}\n```")
    assert assistant.parse("wipe it", session).action == "clear_list"
    assert len(assistant.client.calls) == 1
    print("  ✓ Repairable output needs no second call")

    assistant = _assistant("not json", '{"action": "list_todos"}')
    assert assistant.parse("show", session).action == "list_todos"
    assert len(assistant.client.calls) == 2
    print("  ✓ Malformed output regenerated once")

    assistant = _assistant("not json", "still not json")
    intent = assistant.parse("???", session)
    assert isinstance(intent, UnknownIntent) and intent.original_input == "???"
    assert len(assistant.client.calls) == 2
    print("  ✓ Second failure -> UnknownIntent, no third call")

    assistant = _assistant(RuntimeError("connection reset"), RuntimeError("connection reset"))
    intent = assistant.parse("add milk", session)
    assert isinstance(intent, UnknownIntent) and "connection reset" in intent.error
    print("  ✓ Network errors -> UnknownIntent")

    assistant = _assistant('{"action": "add_todo", "priority": "urgent"}')
    intent = assistant.parse("add something", session)
    assert isinstance(intent, UnknownIntent) and "add_todo" in intent.error
    print("  ✓ Schema violations -> UnknownIntent")

    assistant = _assistant('{"action": "unknown"}')
    assert assistant.parse("sing a song", session).original_input == "sing a song"
    print("  ✓ Model-reported unknown keeps the original input")

    unconfigured = TodoAssistant()
    unconfigured.client = None
    assert not unconfigured.is_configured()
    assert isinstance(unconfigured.parse("add milk", session), UnknownIntent)
    print("  ✓ No client -> UnknownIntent without a call")


def test_chat():
    print("\n── Test: chat() ──")

    session = _session()
    assistant = _assistant("You have nothing due today.")
    reply = assistant.chat("what is due today?", session)
    assert isinstance(reply, Conversational) and reply.message == "You have nothing due today."
    call = assistant.client.calls[0]
    assert "response_format" not in call and call["temperature"] == 0.3
    print("  ✓ Plain text -> Conversational at chat temperature")

    assistant = _assistant(
        '{"action": "command_sequence", "description": "urgent list", "commands": ['
        '{"action": "create_list", "name": "Urgent"}, {"action": "switch_list", "name": "Urgent"}]}'
    )
    reply = assistant.chat("make an urgent list", session)
    assert isinstance(reply, CommandSequence) and len(reply.commands) == 2
    print("  ✓ JSON reply -> typed command")

    assistant = _assistant('Use braces like {this} in titles')
    assert isinstance(assistant.chat("how?", session), Conversational)
    print("  ✓ Text with stray braces stays conversational")


def test_parsed_reference_executes_safely():
    print("\n── Test: Model reference through the engine ──")

    session = _session()
    engine = CommandEngine(session)
    engine.execute(AddTodo(title="Buy milk"))
    dog = engine.execute(AddTodo(title="Walk dog")).todo
    engine.execute({"action": "delete_todo", "todoNumber": 1})  # positions shift after the prompt

    assistant = _assistant('{"action": "complete_todo", "shortId": "%s", "confirmTitle": "walk dog"}' % dog.short_id)
    intent = assistant.parse("I walked the dog", session)
    assert isinstance(intent, CompleteTodo)
    result = engine.execute(intent)
    assert result.todo is dog and dog.completed
    print("  ✓ shortId + confirmTitle from the model completes the right todo")


def main():
    print("=" * 60)
    print("  ASSISTANT TESTS (stub client)")
    print("=" * 60)
    test_json_repair()
    test_parse_prompt_and_call()
    test_regeneration_and_fallbacks()
    test_chat()
    test_parsed_reference_executes_safely()
    print("\n  ✓ ALL TESTS PASSED")


if __name__ == "__main__":
    main()
