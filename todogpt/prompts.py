# todogpt/prompts.py

from datetime import date, timedelta
from typing import List, Optional

from todogpt.config import config
from todogpt.schema import TodoList

PARSE_SYSTEM_INTRO = "You are a helpful assistant that parses natural language todo requests into structured JSON."
CHAT_SYSTEM_INTRO = (
    "You are a helpful AI assistant for a todo list application. Help users manage tasks, "
    "provide insights, and suggest command sequences for complex operations."
)

REFERENCE_RULES = """Referring to existing todos:
- Every todo above is shown as `N. [ ] Title {shortId}`. N is only its current display position.
- ALWAYS identify a todo by its shortId (the 8 characters inside the braces) and also send
  "confirmTitle" with a few words of its title, e.g. {"action": "complete_todo", "shortId": "a1b2c3d4", "confirmTitle": "buy milk"}
- Use "todoNumber" only for a todo created earlier in the same command_sequence (it has no shortId yet).
- Never guess a shortId that is not in the list above."""

EDIT_RULES = """Editing:
- edit_todo only contains the fields that change. Leave every other field out.
- To remove a value, send it as null (e.g. "dueDate": null). The title cannot be removed."""

ACTION_SCHEMAS = """Command Types:
- add_todo: {"action": "add_todo", "title": "string", "description": "string", "priority": "high|medium|low", "dueDate": "YYYY-MM-DD", "categories": ["string"], "tags": ["string"]}
- add_multiple_todos: {"action": "add_multiple_todos", "todos": [{"title": "string", ...same optional fields as add_todo}]}
- complete_todo / uncomplete_todo / delete_todo: {"action": "...", "shortId": "string", "confirmTitle": "string"}
- edit_todo: {"action": "edit_todo", "shortId": "string", "confirmTitle": "string", ...only the changed fields}
- move_todo: {"action": "move_todo", "shortId": "string", "confirmTitle": "string", "targetList": "string"}
- list_todos: {"action": "list_todos", "filter": {"status": "completed|incomplete", "priority": "high|medium|low", "category": "string", "query": "string"}}
- create_list / switch_list / delete_list: {"action": "...", "name": "string"}
- clear_list: {"action": "clear_list"}
- command_sequence: {"action": "command_sequence", "description": "string", "commands": [ ...1 to %d of the commands above ]}
- unknown: {"action": "unknown", "originalInput": "string"} when the request cannot be understood"""

DATE_RULES = """Date parsing guidelines (today is %s):
- "today" -> today's date, "tomorrow" -> add 1 day, "next week" -> add 7 days
- "Monday", "Tuesday", etc. -> the next occurrence of that day
- "in 3 days" -> add 3 days
- Always send dates as YYYY-MM-DD"""


def format_todos_for_context(todo_list: Optional[TodoList], limit: Optional[int] = None) -> str:
    """Numbered listing with short ids, capped at ``limit`` rows."""
    if todo_list is None or not todo_list.todos:
        return "- No todos in current list"

    limit = limit or config['max_prompt_todos']
    lines = []
    for position, todo in enumerate(todo_list.todos[:limit], start=1):
        status = "✓" if todo.completed else " "
        text = f"  {position}. [{status}] {todo.title} {{{todo.short_id}}}"
        if todo.priority:
            text += f" [{todo.priority}]"
        if todo.due_date:
            text += f" (due: {todo.due_date.isoformat()})"
        if todo.categories:
            text += f" <{', '.join(todo.categories)}>"
        lines.append(text)
    hidden = len(todo_list.todos) - limit
    if hidden > 0:
        lines.append(f"  ... and {hidden} more")
    return "\n".join(lines)


def _context_block(current: Optional[TodoList], lists: List[TodoList], today: date) -> str:
    available = ", ".join(f"{l.name} ({len(l.todos)} items)" for l in lists) or "None"
    current_name = current.name if current else "None"
    return (
        f"Current context:\n"
        f"- Current list: {current_name}\n"
        f"- Available lists: {available}\n"
        f"- Today's date: {today.isoformat()}\n\n"
        f"Current Todos in \"{current_name}\":\n"
        f"{format_todos_for_context(current)}"
    )


def build_parse_prompt(current: Optional[TodoList], lists: List[TodoList],
                       history: Optional[List[str]] = None, today: Optional[date] = None) -> str:
    today = today or date.today()
    tomorrow = (today + timedelta(days=1)).isoformat()
    history_block = ""
    if history:
        history_block = "\n\nRecent Conversation:\n" + "\n".join(history)

    return f"""{PARSE_SYSTEM_INTRO}

{_context_block(current, lists, today)}{history_block}

Parse the user's input and determine what action they want to take. Respond with valid JSON only.

{ACTION_SCHEMAS % config['max_sequence_length']}

{REFERENCE_RULES}

{EDIT_RULES}

{DATE_RULES % today.isoformat()}

Examples:
"Add buy groceries with high priority" -> {{"action": "add_todo", "title": "buy groceries", "priority": "high"}}
"Add get milk tomorrow" -> {{"action": "add_todo", "title": "get milk", "dueDate": "{tomorrow}"}}
"I need to call the dentist and finish the report" -> {{"action": "add_multiple_todos", "todos": [{{"title": "call the dentist"}}, {{"title": "finish the report"}}]}}
"Show me my work todos" -> {{"action": "list_todos", "filter": {{"category": "work"}}}}
"Create shopping list" -> {{"action": "create_list", "name": "shopping"}}"""


def build_chat_prompt(current: Optional[TodoList], lists: List[TodoList],
                      history: Optional[List[str]] = None, today: Optional[date] = None) -> str:
    today = today or date.today()
    history_block = ""
    if history:
        history_block = "\n\nRecent Conversation:\n" + "\n".join(history)

    return f"""{CHAT_SYSTEM_INTRO}

{_context_block(current, lists, today)}{history_block}

IMPORTANT: You have full access to the user's current todos shown above. Use this data to answer questions directly.

Response Types:
1. Structured JSON (for modifying the todo list): return exactly one JSON object, nothing else.
2. Data analysis (questions about existing todos): answer in plain text using the todos above.
3. Advice (recommendations): answer in plain text based on the todos above.

{ACTION_SCHEMAS % config['max_sequence_length']}

{REFERENCE_RULES}

{EDIT_RULES}

Use command_sequence for requests that need several steps, e.g. "Move high priority items to a new Urgent list":
{{"action": "command_sequence", "description": "Create Urgent and move the high priority todos", "commands": [
  {{"action": "create_list", "name": "Urgent"}},
  {{"action": "move_todo", "shortId": "a1b2c3d4", "confirmTitle": "fix login bug", "targetList": "Urgent"}}
]}}

Compare due dates against today's date ({today.isoformat()}) for overdue questions."""
