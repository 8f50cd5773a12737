import os
import sys
import argparse
import json

# Add parent directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from backend.storage import SQLiteTodoStore
from todogpt.errors import PersistenceError


def connect(db_path=None):
    store = SQLiteTodoStore(db_path)
    if not os.path.exists(store.db_path):
        print(f"❌ Database not found: {store.db_path}")
        sys.exit(1)
    return store


def inspect_table(store, table_name, limit=10):
    tables = store.list_tables()
    if table_name not in tables:
        print(f"❌ Table '{table_name}' does not exist.")
        print(f"Available tables: {', '.join(tables)}")
        return

    print(f"\n🔍 Inspecting table: {table_name} (Limit {limit})\n")

    rows = store.fetch_rows(table_name, limit)
    if not rows:
        print("   (Table is empty)")
    else:
        # Print JSON-like structure for readability
        for i, row in enumerate(rows):
            print(f"--- Row {i+1} ---")
            print(json.dumps(row, indent=2, ensure_ascii=False))
            print("")


def show_lists(store):
    for todo_list in store.load_lists():
        print(f"\n📋 {todo_list.name} ({len(todo_list.todos)} todos)")
        for position, todo in enumerate(todo_list.todos, start=1):
            mark = "✓" if todo.completed else "○"
            print(f"   {position}. {mark} {todo.title} {{{todo.short_id}}}  id={todo.id}")


def main():
    parser = argparse.ArgumentParser(description="Inspect the todo-gpt SQLite database")
    parser.add_argument("table", nargs="?", help="Name of the table to inspect")
    parser.add_argument("--db", help="Database path (default: TODO_GPT_DB_PATH or ~/.todo-gpt/data.db)")
    parser.add_argument("--list", action="store_true", help="List all tables")
    parser.add_argument("--todos", action="store_true", help="Show every list with its todos and ids")
    parser.add_argument("--limit", type=int, default=5, help="Number of rows to show")

    args = parser.parse_args()
    store = connect(args.db)

    try:
        if args.todos:
            show_lists(store)
            return

        tables = store.list_tables()
        if args.list or not args.table:
            print("📂 Available Tables:")
            for t in tables:
                print(f" - {t}")
            if not args.list:
                print("\nUsage: python scripts/inspect_db.py <table_name>")

        if args.table:
            inspect_table(store, args.table, args.limit)
    except PersistenceError as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
