import json
import re
from datetime import date
from typing import Optional

from openai import OpenAI

from todogpt.config import config
from todogpt.errors import CollaboratorError, CommandValidationError
from todogpt.intents import Conversational, UnknownIntent, parse_intent
from todogpt.prompts import build_chat_prompt, build_parse_prompt

CONFIGURATION_HELP = """To enable AI-powered todo parsing:

Option 1: Create a .env file (recommended)
  OPENAI_API_KEY=sk-...        (or GROQ_API_KEY=gsk_...)
  OPENAI_MODEL=gpt-4o-mini     (optional)

Option 2: Environment variable
  export OPENAI_API_KEY=your_api_key_here

Without an API key you can still use slash commands like /add, /list, etc."""


def _attempt_json_repair(raw: str) -> Optional[dict]:
    """
    Attempts to repair malformed JSON from the LLM: markdown fences,
    control characters, prose around the object, trailing commas.
    """
    # Strip markdown fences
    cleaned = re.sub(r'^```(?:json)?\s*', '', raw.strip())
    cleaned = re.sub(r'\s*```$', '', cleaned)

    # Strip non-printable control characters (except newlines/tabs)
    cleaned = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', cleaned)

    # Keep only the outermost {...}
    start, end = cleaned.find('{'), cleaned.rfind('}')
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]

    # Fix trailing commas before } or ]
    cleaned = re.sub(r',\s*([}\]])', r'\1', cleaned)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _decode(raw: str) -> Optional[dict]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return _attempt_json_repair(raw)
    return parsed if isinstance(parsed, dict) else None


class TodoAssistant:
    """
    Natural-language collaborator. Turns free text into a validated intent
    and never raises for LLM trouble: a failed call or an unusable answer
    comes back as an UnknownIntent carrying the error.
    """
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 client=None, verbose: bool = False):
        """
        Args:
            api_key: Optional override for the OPENAI_API_KEY / GROQ_API_KEY settings.
            model: Optional override for the default model choice.
            client: Pre-built OpenAI-compatible client (tests pass a stub).
            verbose: Print the raw model output as [DEBUG] lines.
        """
        resolved_key = api_key or config['openai_api_key'] or config['groq_api_key']
        self.verbose = verbose
        self.client = client

        if resolved_key and (resolved_key.startswith("sk-") or resolved_key == config['openai_api_key']):
            base_url = "https://api.openai.com/v1"
            self.model = model or config['openai_model']
        else:
            base_url = "https://api.groq.com/openai/v1"
            self.model = model or config['groq_model']

        if self.client is None and resolved_key:
            self.client = OpenAI(
                api_key=resolved_key,
                base_url=base_url,
                timeout=config['timeout'],
            )

    def is_configured(self) -> bool:
        return self.client is not None

    # ── prompts ──

    def system_prompt(self, session, chat: bool = False, today: Optional[date] = None) -> str:
        current = _current_list(session)
        history = session.context.render(config['prompt_history_turns'])
        if chat:
            return build_chat_prompt(current, session.lists, history, today=today)
        return build_parse_prompt(current, session.lists, history, today=today)

    # ── entry points ──

    def parse(self, text: str, session, today: Optional[date] = None, is_retry: bool = False):
        """Free text -> one validated intent (JSON mode, low temperature)."""
        if not self.is_configured():
            return UnknownIntent(original_input=text, error="AI is not configured. Use /config for setup instructions.")

        try:
            raw = self._complete(
                self.system_prompt(session, today=today), text,
                temperature=config['temperature'], json_mode=True,
            )
        except CollaboratorError as e:
            if not is_retry:
                print(f"  [Assistant] ⚠ LLM call failed ({e}). Attempting REGENERATION...")
                return self.parse(text, session, today=today, is_retry=True)
            print(f"  [Assistant] ✗ LLM call failed significantly: {e}")
            return UnknownIntent(original_input=text, error=str(e))

        payload = _decode(raw)
        if payload is None:
            if not is_retry:
                print("  [Assistant] ⚠ Malformed JSON. Attempting REGENERATION...")
                return self.parse(text, session, today=today, is_retry=True)
            print("  [Assistant] ✗ Regeneration failed.")
            return UnknownIntent(original_input=text, error="The model did not return valid JSON")

        return self._validate(payload, text)

    def chat(self, text: str, session, today: Optional[date] = None):
        """
        Chat-mode turn. A JSON answer becomes an intent; anything else is a
        plain Conversational reply.
        """
        if not self.is_configured():
            return UnknownIntent(original_input=text, error="AI is not configured. Use /config for setup instructions.")

        try:
            raw = self._complete(
                self.system_prompt(session, chat=True, today=today), text,
                temperature=config['chat_temperature'], json_mode=False,
            )
        except CollaboratorError as e:
            print(f"  [Assistant] ✗ AI chat failed: {e}")
            return UnknownIntent(original_input=text, error=str(e))

        stripped = raw.strip()
        payload = _decode(stripped) if "{" in stripped else None
        if payload is None or "action" not in payload:
            return Conversational(message=stripped)
        return self._validate(payload, text)

    # ── internals ──

    def _validate(self, payload: dict, text: str):
        try:
            intent = parse_intent(payload)
        except CommandValidationError as e:
            print(f"  [Assistant] ✗ Rejected model output: {e}")
            return UnknownIntent(original_input=text, error=str(e))
        if intent.action == "unknown" and not intent.original_input:
            intent = intent.model_copy(update={"original_input": text})
        return intent

    def _complete(self, system: str, text: str, temperature: float, json_mode: bool) -> str:
        kwargs = dict(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": text},
            ],
            temperature=temperature,
            max_tokens=config['max_tokens'],
        )
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except Exception as e:
            raise CollaboratorError(f"LLM request failed: {e}", cause=e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CollaboratorError("No response from the model")

        if self.verbose:
            print(f"\n[DEBUG] Raw model output:\n{content}\n")
        return content


def _current_list(session):
    for todo_list in session.lists:
        if todo_list.id == session.current_list_id:
            return todo_list
    return None
