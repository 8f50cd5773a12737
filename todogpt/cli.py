"""
cli.py

Interactive loop: slash commands go straight to the parser, anything else
goes to the assistant. Every input is handled to completion (LLM call,
mutation, write) before the next one is read, and no TodoError ends the
loop.
"""

import argparse
import os
from collections import deque
from typing import Callable, Deque, List, Optional

try:
    import readline
except ImportError:  # Windows consoles have no readline; history still works via /history
    readline = None

from backend.storage import SQLiteTodoStore
from todogpt.assistant import CONFIGURATION_HELP, TodoAssistant
from todogpt.commands import ReplCommand, is_slash_command, parse_slash_command
from todogpt.config import config
from todogpt.display import Colors, failure, format_lists, format_rows, success, warning
from todogpt.engine import CommandEngine, CommandResult
from todogpt.errors import BatchStepError, TodoError
from todogpt.session import Session

HELP_TEXT = """
Available commands:
  List Management:
    /create <name>       - Create a new list
    /switch <name>       - Switch to a different list
    /lists               - Show all lists
    /delete-list <name>  - Delete a list
  Todo Management (<id> is the number or the {shortId} from /list):
    /add <title>         - Add a todo to current list
                           Options: --priority high|medium|low --due DATE --category a,b --tag x --description text
    /list                - Show todos in current list
    /complete <id>       - Mark a todo as completed
    /uncomplete <id>     - Mark a todo as not completed
    /delete <id>         - Delete a todo
    /edit <id>           - Edit a todo
                           Options: --title text --priority p --due DATE --category a,b --clear due|priority|...
    /move <id> <list>    - Move a todo to another list
    /filter              - Filter todos by criteria
                           Options: --status completed|active --priority p --category c --query text
    /clear               - Clear all todos from current list
  Other:
    /history             - Show recent command history
    /config              - Show AI configuration instructions
    /prompt              - Show current AI system prompt
    /chat [message]      - Enter AI chat mode or send a single message
  General:
    /help                - Show this help
    /exit                - Exit interactive mode

DATE is YYYY-MM-DD or a phrase like tomorrow, friday, next monday, in 3 days, feb 20.
"""


class TodoCLI:
    def __init__(self, session: Session, engine: CommandEngine, assistant: TodoAssistant,
                 input_fn: Callable[[str], str] = input, history_path: Optional[str] = None):
        self.session = session
        self.engine = engine
        self.assistant = assistant
        self.input_fn = input_fn
        self.history_path = history_path
        self.history: Deque[str] = deque(maxlen=config['history_size'])
        self.chat_mode = False

    # ── history ──

    def load_history(self) -> None:
        if not self.history_path or not os.path.exists(self.history_path):
            return
        with open(self.history_path, "r", encoding="utf-8") as f:
            for line in f.read().splitlines():
                if line.strip():
                    self.history.append(line)
        if readline is not None:
            readline.clear_history()
            readline.set_history_length(config['history_size'])
            for line in self.history:
                readline.add_history(line)

    def save_history(self) -> None:
        if not self.history_path:
            return
        try:
            os.makedirs(os.path.dirname(self.history_path) or ".", exist_ok=True)
            with open(self.history_path, "w", encoding="utf-8") as f:
                f.write("\n".join(self.history) + "\n")
        except OSError as e:
            print(warning(f"Could not save command history: {e}"))

    def _remember(self, text: str) -> None:
        if text in self.history:
            self.history.remove(text)
        self.history.append(text)

    # ── loop ──

    def prompt(self) -> str:
        if self.chat_mode:
            return "💬 "
        return f"[{self.session.current_list.name}] > "

    def run(self) -> None:
        self.load_history()
        print(f"{Colors.HEADER}{Colors.BOLD}todo-gpt{Colors.ENDC} - type /help for commands")
        if not self.assistant.is_configured():
            print(warning("AI is not configured; only slash commands are available (see /config)."))
        print(f"Current list: {self.session.current_list.name}\n")
        try:
            while True:
                try:
                    line = self.input_fn(self.prompt())
                except (KeyboardInterrupt, EOFError):
                    print("\nGoodbye!")
                    break
                if not self.handle_line(line):
                    print("Goodbye!")
                    break
        finally:
            self.save_history()

    def handle_line(self, line: str) -> bool:
        """Process one input. Returns False when the user asked to exit."""
        text = (line or "").strip()
        if not text:
            return True

        if self.chat_mode:
            if text in ("/exit", "exit"):
                self.chat_mode = False
                print("💬 Exiting chat mode...\n")
                return True
            self._guarded(text, lambda: self._chat(text))
            return True

        if text in ("/exit", "exit"):
            return False

        self._remember(text)
        if is_slash_command(text):
            return self._guarded(text, lambda: self._slash(text))
        self._guarded(text, lambda: self._natural_language(text))
        return True

    def _guarded(self, text: str, handler: Callable[[], Optional[bool]]) -> bool:
        try:
            outcome = handler()
        except BatchStepError as e:
            for result in e.completed:
                self._show(result)
            print(failure(str(e)))
            print(warning("Stopping sequence execution.\n"))
            self._record(text, str(e))
            return True
        except TodoError as e:
            print(failure(f"{e}\n"))
            self._record(text, f"Error: {e}")
            return True
        return outcome is not False

    def _record(self, user_text: str, reply: str) -> None:
        self.session.context.record_user(user_text)
        self.session.context.record_assistant(reply)

    # ── dispatch ──

    def _slash(self, text: str) -> Optional[bool]:
        parsed = parse_slash_command(text)
        if isinstance(parsed, ReplCommand):
            return self._repl_command(parsed)
        self._apply(parsed, text)
        return True

    def _natural_language(self, text: str) -> None:
        if not self.assistant.is_configured():
            print(f"❓ I don't understand \"{text}\"")
            print("💡 Use /help to see available commands, or /config to set up AI features.\n")
            return
        print("🤖 Processing your request...")
        self._apply(self.assistant.parse(text, self.session), text)

    def _chat(self, text: str) -> None:
        print("🤖 Thinking...")
        self._apply(self.assistant.chat(text, self.session), text)

    def _apply(self, intent, user_text: str) -> None:
        action = intent.action
        if action == "conversational":
            print(f"\n🤖 {intent.message}\n")
            self._record(user_text, intent.message)
            return
        if action == "unknown":
            print(f"❓ I couldn't turn that into a command{': ' + intent.error if intent.error else ''}")
            print("💡 Try a slash command like /add, /list, etc.\n")
            self._record(user_text, "Could not parse the request")
            return
        if action == "command_sequence":
            outcome = self.engine.execute_sequence(intent, self._confirm)
            if outcome.cancelled:
                print(failure("Command sequence cancelled.\n"))
                self._record(user_text, "Command sequence cancelled")
                return
            for result in outcome.results:
                self._show(result)
            print(success("Command sequence completed successfully!\n"))
            self._record(user_text, "; ".join(r.message for r in outcome.results))
            return

        result = self.engine.execute(intent)
        self._show(result)
        self._record(user_text, result.message)

    def _confirm(self, rendered: str) -> bool:
        print("\n🤖 I suggest the following sequence of commands:")
        for line in rendered.splitlines():
            print(f"   {line}")
        print()
        while True:
            try:
                answer = self.input_fn("Execute these commands? (y/n): ").strip().lower()
            except (KeyboardInterrupt, EOFError):
                print()
                return False
            if answer:
                return answer in ("y", "yes")

    def _show(self, result: CommandResult) -> None:
        if result.action == "list_todos":
            print(f"\n{Colors.BOLD}{result.message}{Colors.ENDC}")
            for line in format_rows(result.todos):
                print(line)
            print()
            return
        print(success(result.message))
        if result.action == "add_multiple_todos":
            for line in format_rows(result.todos):
                print(line)
        print()

    # ── REPL-only commands ──

    def _repl_command(self, command: ReplCommand) -> bool:
        name = command.name
        if name == "exit":
            return False
        if name == "help":
            print(HELP_TEXT)
        elif name == "lists":
            print("\nLists:")
            for line in format_lists(self.session.lists, self.session.current_list_id):
                print(line)
            print()
        elif name == "history":
            self._show_history()
        elif name == "config":
            status = f"configured (model: {self.assistant.model})" if self.assistant.is_configured() else "not configured"
            print(f"\nAI status: {status}\n\n{CONFIGURATION_HELP}\n")
        elif name == "prompt":
            print("\n📝 Current AI System Prompt:")
            print("=" * 60)
            print(self.assistant.system_prompt(self.session))
            print("=" * 60 + "\n")
        elif name == "chat":
            self._start_chat(command.argument)
        return True

    def _show_history(self) -> None:
        recent: List[str] = list(self.history)[-10:]
        print("\nRecent command history:")
        if not recent:
            print("  (no command history yet)\n")
            return
        for index, line in enumerate(reversed(recent), start=1):
            print(f"  {index}. {line}")
        print("\nTip: Copy and paste commands to reuse them.\n")

    def _start_chat(self, message: str) -> None:
        if not self.assistant.is_configured():
            print(failure("AI is not configured. Use /config for setup instructions.\n"))
            return
        if message:
            self._chat(message)
            return
        self.chat_mode = True
        print("💬 Chat mode. Ask about your todos or describe changes; type 'exit' to leave.\n")


def _quote(arg: str) -> str:
    return f'"{arg}"' if " " in arg else arg


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="todo-gpt", description="Todo lists with natural-language commands")
    parser.add_argument("--db", help="Path to the SQLite database (default: ~/.todo-gpt/data.db)")
    parser.add_argument("--verbose", action="store_true", help="Print raw model output")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Run a single command and exit")
    args = parser.parse_args(argv)

    store = SQLiteTodoStore(args.db)
    try:
        session = Session.open(store)
    except TodoError as e:
        print(failure(str(e)))
        return 1

    assistant = TodoAssistant(verbose=args.verbose)
    cli = TodoCLI(session, CommandEngine(session), assistant, history_path=config['history_path'])

    if args.command:
        cli.handle_line(" ".join(_quote(arg) for arg in args.command))
        return 0

    cli.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
