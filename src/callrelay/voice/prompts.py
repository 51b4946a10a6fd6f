"""
System prompt storage and rendering.

The prompt lives in a small JSON file (``{"prompt": "..."}``) so operators
can edit it at runtime; a built-in default is used until one is saved.
Placeholders use ``{name}`` syntax: ``{currentDateTime}`` is always filled,
every other placeholder comes from the call's variable bindings.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path

from callrelay.shared.exceptions import PromptValidationError
from callrelay.shared.logging import get_logger

logger = get_logger(__name__)

MIN_PROMPT_LENGTH = 100
PERSONA_MARKER = "You are Steve"

ESSENTIAL_PROMPT = """You are Steve, a professional and friendly caller. The current time is: {currentDateTime}

Your main tasks are:
1. Introduce yourself and confirm you're speaking with the right person
2. Explain the reason for your call using the provided details
3. Be polite and professional throughout the call"""

DEFAULT_PROMPT = (
    ESSENTIAL_PROMPT
    + """

When the conversation naturally concludes, use the 'hangUp' tool to end the call."""
)


def format_current_datetime(now: datetime | None = None) -> str:
    """Human readable timestamp, e.g. ``Monday, March 4, 2024 at 2:05 PM UTC``."""
    now = now or datetime.now().astimezone()
    hour = now.strftime("%I").lstrip("0") or "12"
    tz = now.strftime("%Z")
    text = f"{now.strftime('%A, %B')} {now.day}, {now.year} at {hour}:{now.strftime('%M %p')}"
    return f"{text} {tz}" if tz else text


def render_prompt(template: str, variables: dict[str, str], now: datetime | None = None) -> str:
    """Substitute ``{currentDateTime}`` and the call's variables.

    Each placeholder is replaced once; empty values become
    ``[no <name> provided]``.
    """
    rendered = template.replace("{currentDateTime}", format_current_datetime(now), 1)
    for key, value in variables.items():
        rendered = rendered.replace(f"{{{key}}}", str(value) if value else f"[no {key} provided]", 1)
    return rendered


def normalize_submitted_prompt(prompt: str | None) -> str:
    """Validate an operator-submitted prompt and ensure the persona preamble.

    Raises:
        PromptValidationError: If the prompt is missing or too short.
    """
    if not prompt:
        raise PromptValidationError("Prompt is required")
    if len(prompt) < MIN_PROMPT_LENGTH:
        raise PromptValidationError("Prompt is too short. Please provide a complete prompt.")
    if PERSONA_MARKER in prompt:
        return prompt
    return f"{ESSENTIAL_PROMPT}\n\n{prompt}"


class PromptStore:
    """JSON-file backed prompt storage."""

    def __init__(self, path: str | Path, default_prompt: str = DEFAULT_PROMPT) -> None:
        self._path = Path(path)
        self._default_prompt = default_prompt
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> str:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            prompt = data["prompt"]
        except (OSError, ValueError, KeyError, TypeError):
            logger.info("Using default prompt", extra={"prompt_file": str(self._path)})
            return self._default_prompt
        if not isinstance(prompt, str) or not prompt:
            return self._default_prompt
        return prompt

    def _write(self, prompt: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps({"prompt": prompt}, indent=2), encoding="utf-8")

    async def get(self) -> str:
        return await asyncio.to_thread(self._read)

    async def save(self, prompt: str | None) -> str:
        """Validate, normalise and persist a prompt; returns what was stored.

        Raises:
            PromptValidationError: If the prompt is rejected.
            OSError: If the file cannot be written.
        """
        final_prompt = normalize_submitted_prompt(prompt)
        async with self._lock:
            await asyncio.to_thread(self._write, final_prompt)
        logger.info("Prompt saved", extra={"prompt_file": str(self._path), "length": len(final_prompt)})
        return final_prompt
