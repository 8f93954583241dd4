# ruff: noqa: E501

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

from .errors import ExtractError
from .models import StructuredDetails

log = logging.getLogger(__name__)

EXPERIENCE_LEVELS = ("Junior", "Mid", "Senior", "Lead")

SYSTEM_PROMPT = "You are a helpful assistant."

PROMPT_BASE = '''
Your task is to analyze data about job postings and reply in JSON only.
Always respond in JSON.
DO NOT make up data that is not explicitly present in the provided context.
Your JSON deserializes into the following object:
"""
{
  "requirements": [string],
  "tasks": [string],
  "technologies": [string],
  "benefits": [string],
  "programming_languages": [string],
  "salary_forecast": [min, max] or null,
  "experience_level": "Junior" | "Mid" | "Senior" | "Lead",
  "application_url": string or null,
  "workplace": string or null
}
"""
- experience_level can be one of the following values: ["Junior", "Mid", "Senior", "Lead"]
- benefits is an array of keywords, make sure to pick conventional ones
- workplace is "Remote", "Hybrid" or "Onsite" when stated
Data:
"""
'''

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.I)


class Extractor(Protocol):
    def extract(self, raw_text: str) -> StructuredDetails: ...


class OpenAIExtractor:
    """
    Turns raw posting text into StructuredDetails via the shared OpenAIChat facade.
    Model and temperature come from OPENAI_MODEL_EXTRACT / OPENAI_TEMP_EXTRACT.
    """

    def __init__(self, model_env: str = "OPENAI_MODEL_EXTRACT", temp_env: str = "OPENAI_TEMP_EXTRACT", chat: Any = None) -> None:
        if chat is None:
            from modules._shared import utils

            chat = utils.OpenAIChat(model_env=model_env, temp_env=temp_env)
        self._chat = chat

    def build_prompt(self, raw_text: str) -> str:
        return f'{PROMPT_BASE}{raw_text}\n"""'

    def extract(self, raw_text: str) -> StructuredDetails:
        if not (raw_text or "").strip():
            raise ExtractError("nothing to analyze")
        try:
            reply = self._chat.chat(SYSTEM_PROMPT, self.build_prompt(raw_text))
        except Exception as e:
            raise ExtractError(f"LLM call failed: {e!r}") from e
        log.debug("extractor reply: %d chars", len(reply or ""))
        return parse_details(reply)


def parse_details(reply: str) -> StructuredDetails:
    """Parse the model's JSON reply; tolerate a ```json fence around it."""
    text = _FENCE_RE.sub("", (reply or "").strip())
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ExtractError(f"reply is not JSON: {text[:200]!r}") from e
    if not isinstance(data, dict):
        raise ExtractError("reply JSON is not an object")

    level = data.get("experience_level")
    if level is not None:
        level = str(level).strip().title()
        if level not in EXPERIENCE_LEVELS:
            raise ExtractError(f"unknown experience_level {data.get('experience_level')!r}")

    return StructuredDetails(
        requirements=_str_list(data, "requirements"),
        tasks=_str_list(data, "tasks"),
        technologies=_str_list(data, "technologies"),
        benefits=_str_list(data, "benefits"),
        programming_languages=_str_list(data, "programming_languages"),
        salary_forecast=_salary(data.get("salary_forecast")),
        experience_level=level,
        application_url=_opt_str(data.get("application_url")),
        workplace=_opt_str(data.get("workplace")),
    )


def _str_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ExtractError(f"{key} must be a list")
    return [str(v).strip() for v in value if str(v).strip()]


def _salary(value: Any) -> tuple[int, int] | None:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ExtractError(f"salary_forecast must be a [min, max] pair, got {value!r}")
    try:
        lo, hi = int(value[0]), int(value[1])
    except (TypeError, ValueError) as e:
        raise ExtractError(f"salary_forecast is not numeric: {value!r}") from e
    return (lo, hi) if lo <= hi else (hi, lo)


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None
