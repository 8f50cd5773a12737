import os
import sys
import argparse
from datetime import date, timedelta

# Add parent directory to path to import backend modules
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from backend.storage import SQLiteTodoStore
from todogpt.engine import CommandEngine
from todogpt.errors import TodoError
from todogpt.intents import AddTodo, CompleteTodo
from todogpt.session import Session


def run_seed(db_path=None, reset=False):
    store = SQLiteTodoStore(db_path)
    if reset and os.path.exists(store.db_path):
        os.remove(store.db_path)
        print(f"🗑  Removed {store.db_path}")

    print(f"🌱 Seeding {store.db_path}...")
    session = Session.open(store)
    engine = CommandEngine(session)
    today = date.today()

    # 1. Personal list (auto-created by Session.open)
    personal = [
        AddTodo(title="Buy milk", priority="high", due_date=today, categories=["errands"]),
        AddTodo(title="Walk dog", categories=["home"]),
        AddTodo(title="Call the dentist", due_date=today + timedelta(days=3)),
        AddTodo(title="Renew passport", priority="low", tags=["paperwork"]),
    ]

    # 2. Work list
    work = [
        AddTodo(title="Finish Q1 report", priority="high", due_date=today + timedelta(days=1), categories=["reports"]),
        AddTodo(title="Review pull requests", priority="medium"),
        AddTodo(title="Plan sprint retro", description="book a room and send the agenda"),
    ]

    try:
        added = []
        for intent in personal:
            result = engine.execute(intent)
            added.append(result.todo)
            print(f"  ✓ {result.message}")
        engine.execute(CompleteTodo(short_id=added[1].short_id, confirm_title="dog"))

        if session.find_list("Work") is None:
            engine.execute({"action": "create_list", "name": "Work"})
        engine.execute({"action": "switch_list", "name": "Work"})
        for intent in work:
            print(f"  ✓ {engine.execute(intent).message}")
    except TodoError as e:
        print(f"⚠️ Seeding stopped: {e}")
        sys.exit(1)

    print("✅ Seed Complete! Sample lists inserted.")


def main():
    parser = argparse.ArgumentParser(description="Fill the todo-gpt database with sample lists")
    parser.add_argument("--db", help="Database path (default: TODO_GPT_DB_PATH or ~/.todo-gpt/data.db)")
    parser.add_argument("--reset", action="store_true", help="Delete the database file first")
    args = parser.parse_args()
    run_seed(args.db, args.reset)


if __name__ == "__main__":
    main()
