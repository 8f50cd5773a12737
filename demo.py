import os
import sys
import time
import argparse
import tempfile

from backend.storage import SQLiteTodoStore
from todogpt.assistant import TodoAssistant
from todogpt.display import Colors, format_rows
from todogpt.engine import CommandEngine
from todogpt.errors import TodoError
from todogpt.intents import AddTodo, CommandSequence, CompleteTodo, DeleteTodo
from todogpt.session import Session

PAUSE = True


def print_step(title, desc):
    print(f"\n{Colors.HEADER}{Colors.BOLD}===================================================={Colors.ENDC}")
    print(f"{Colors.HEADER}{Colors.BOLD}► {title}{Colors.ENDC}")
    print(f"{Colors.HEADER}{Colors.BOLD}===================================================={Colors.ENDC}")
    print(f"{Colors.OKCYAN}{desc}{Colors.ENDC}\n")
    if PAUSE:
        time.sleep(1)


def wait(next_stage):
    if PAUSE:
        input(f"\n{Colors.WARNING}Press [ENTER] to run {next_stage}...{Colors.ENDC}")


def show(engine):
    listing = engine.execute({"action": "list_todos"})
    print(f"{Colors.BOLD}{listing.message}{Colors.ENDC}")
    for line in format_rows(listing.todos):
        print(line)


def try_command(engine, intent):
    print(f"Calling: {engine.describe(intent)}")
    try:
        result = engine.execute(intent)
        print(f"{Colors.OKGREEN}✓ {result.message}{Colors.ENDC}")
    except TodoError as e:
        print(f"{Colors.FAIL}✗ {type(e).__name__}: {e}{Colors.ENDC}")


def prepare_demo_data():
    db_path = os.path.join(tempfile.mkdtemp(prefix="todogpt_demo_"), "demo.db")
    session = Session.open(SQLiteTodoStore(db_path))
    engine = CommandEngine(session)
    for title in ("Buy milk", "Walk dog", "Finish report"):
        engine.execute(AddTodo(title=title))
    return db_path, engine


def run_demo():
    print(f"\n{Colors.OKGREEN}{Colors.BOLD}Starting todo-gpt Stable Identification Demo{Colors.ENDC}\n")

    db_path, engine = prepare_demo_data()
    print(f"{Colors.BOLD}Database:{Colors.ENDC} {db_path}\n")
    show(engine)
    walk_dog = engine.session.current_list.todos[1]

    wait("Stage 1 (Positions drift)")

    # STAGE 1
    print_step("STAGE 1: Positions drift",
               "The assistant was shown '2. Walk dog'. Before its reply arrives, item 1 is deleted.")
    engine.execute(DeleteTodo(todo_number=1))
    show(engine)
    print(f"\nThe reply says 'complete todo 2'. Position 2 is now '{engine.session.current_list.todos[1].title}'.")
    try_command(engine, CompleteTodo(todo_number=2, confirm_title="walk dog"))

    wait("Stage 2 (Short ids hold)")

    # STAGE 2
    print_step("STAGE 2: Short ids hold",
               f"The same reply by short id {{{walk_dog.short_id}}} still finds 'Walk dog'.")
    try_command(engine, CompleteTodo(short_id=walk_dog.short_id, confirm_title="walk dog"))
    try_command(engine, DeleteTodo(short_id=walk_dog.short_id, confirm_title="report"))
    show(engine)

    wait("Stage 3 (Command sequence)")

    # STAGE 3
    print_step("STAGE 3: Command sequence",
               "A batch is shown for confirmation, then run in order; step 4 fails on purpose.")
    sequence = CommandSequence.of(
        AddTodo(title="Book flights", priority="high"),
        AddTodo(title="Pack bags"),
        CompleteTodo(todo_number=3, confirm_title="flights"),
        DeleteTodo(short_id="00000000"),
        AddTodo(title="Never added"),
        description="Plan the trip",
    )

    def confirm(rendered):
        print(rendered)
        return True

    try:
        engine.execute_sequence(sequence, confirm)
    except TodoError as e:
        print(f"\n{Colors.FAIL}✗ {e}{Colors.ENDC}\n")
    show(engine)

    # STAGE 4 (optional)
    if not (os.environ.get("OPENAI_API_KEY") or os.environ.get("GROQ_API_KEY")):
        print(f"\n{Colors.WARNING}⚠ Set OPENAI_API_KEY or GROQ_API_KEY to run Stage 4 (natural language).{Colors.ENDC}")
        return

    wait("Stage 4 (Natural language)")
    print_step("STAGE 4: Natural language",
               "The assistant sees the listing with short ids and answers with shortId + confirmTitle.")
    assistant = TodoAssistant(verbose=True)
    intent = assistant.parse("I packed my bags", engine.session)
    print(f"Parsed: {intent.to_payload()}")
    if intent.action not in ("unknown", "conversational", "command_sequence"):
        try_command(engine, intent)
    show(engine)


def main():
    global PAUSE
    parser = argparse.ArgumentParser(description="Walk through stable todo identification")
    parser.add_argument("--fast", action="store_true", help="Do not pause between stages")
    args = parser.parse_args()
    PAUSE = not args.fast and sys.stdin.isatty()

    run_demo()
    print(f"\n{Colors.OKGREEN}{Colors.BOLD}Demo finished.{Colors.ENDC}\n")


if __name__ == "__main__":
    main()
