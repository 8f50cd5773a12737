import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

DATA_DIR = Path(os.getenv('TODO_GPT_HOME', Path.home() / '.todo-gpt'))

config = {
    'openai_api_key': os.getenv('OPENAI_API_KEY'),
    'groq_api_key': os.getenv('GROQ_API_KEY'),
    'openai_model': os.getenv('OPENAI_MODEL', 'gpt-4o-mini'),
    'groq_model': os.getenv('GROQ_MODEL', 'llama-3.3-70b-versatile'),
    'temperature': float(os.getenv('TODO_GPT_TEMPERATURE', 0.1)),
    'chat_temperature': float(os.getenv('TODO_GPT_CHAT_TEMPERATURE', 0.3)),
    'max_tokens': int(os.getenv('TODO_GPT_MAX_TOKENS', 600)),
    'timeout': int(os.getenv('TODO_GPT_TIMEOUT', 30)),
    'db_path': os.getenv('TODO_GPT_DB_PATH', str(DATA_DIR / 'data.db')),
    'history_path': os.getenv('TODO_GPT_HISTORY_PATH', str(DATA_DIR / 'history')),
    'history_size': int(os.getenv('TODO_GPT_HISTORY_SIZE', 100)),
    'context_turns': int(os.getenv('TODO_GPT_CONTEXT_TURNS', 10)),
    'prompt_history_turns': int(os.getenv('TODO_GPT_PROMPT_HISTORY_TURNS', 3)),
    'max_sequence_length': int(os.getenv('TODO_GPT_MAX_SEQUENCE', 10)),
    'max_prompt_todos': int(os.getenv('TODO_GPT_MAX_PROMPT_TODOS', 20)),
}
