"""Optional LLM-assisted quick-add parser.

The LLM is only allowed to produce one JSON object matching `AIIntentPayload`. Its output is
untrusted: the payload is validated strictly, dates are overridden whenever the text carries a
local date cue, and transaction direction always comes from local verb detection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, time
from functools import lru_cache
from http.client import HTTPException
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from pydantic import ValidationError

from src.config.settings import Settings
from src.intent.dates import datetime_from_scan, parse_llm_date
from src.intent.dictionaries import EVENT_MARKERS, has_any_phrase
from src.intent.extractors import extract_amount, has_currency_cue, infer_category, infer_tags
from src.intent.rules_parser import DEFAULT_TIME_NOTE, analyze, detect_direction
from src.intent.schema import AIIntentPayload, Direction, IntentKind, ParsedIntent, ai_payload_from_obj

logger = logging.getLogger(__name__)

AI_NOTE = "Đã sử dụng AI để parse."
LOCAL_DATE_NOTE = "Ngày được lấy từ cụm thời gian trong câu thay vì từ AI."
AI_DATE_FALLBACK_NOTE = "AI không trả về ngày hợp lệ, dùng ngày hôm nay."
NOT_FINANCE_NOTE = "AI đoán là giao dịch nhưng câu không có số tiền hoặc động từ thu/chi."
DEFAULT_DIRECTION_NOTE = "Không rõ thu hay chi, mặc định là chi."


class LLMParserError(RuntimeError):
    """Raised when the LLM call fails or does not return a valid payload."""


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for an OpenAI-compatible Chat Completions API call."""

    api_key: str
    model: str = "llama-3.1-8b-instant"
    api_base: str = "https://api.groq.com/openai/v1"
    timeout_s: float = 15.0
    temperature: float = 0.3


# (system_prompt, user_text, *, temperature, config) -> message content
ChatCompletion = Callable[..., str]


@lru_cache(maxsize=1)
def load_prompt() -> str:
    prompt_path = Path(__file__).resolve().parent / "prompt_quick_add_v1.md"
    return prompt_path.read_text(encoding="utf-8")


def _strip_code_fences(text: str) -> str:
    value = (text or "").strip()
    if value.startswith("```"):
        value = value.strip("`")
        # After stripping backticks, try to remove leading "json" marker.
        value = value.removeprefix("json").strip()
    return value


def _chat_completions_url(api_base: str) -> str:
    return api_base.rstrip("/") + "/chat/completions"


def chat_completion(system: str, user: str, *, temperature: float, config: LLMConfig) -> str:
    """Call an OpenAI-style `/chat/completions` endpoint and return the message content.

    Blocking; `AssistedParser` runs it in a worker thread.
    """

    payload = {
        "model": config.model,
        "temperature": temperature,
        "response_format": {"type": "json_object"},
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
    }

    req = Request(
        _chat_completions_url(config.api_base),
        method="POST",
        headers={
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        },
        data=json.dumps(payload).encode(),
    )

    try:
        with urlopen(req, timeout=config.timeout_s) as resp:  # noqa: S310 (explicit, feature-flagged network call)
            body = resp.read()
    except HTTPError as exc:
        raise LLMParserError(f"LLM HTTP error: {exc.code}") from exc
    except (URLError, HTTPException, OSError) as exc:
        # IncompleteRead, BadStatusLine: truncated or garbled responses.
        raise LLMParserError("LLM connection error") from exc

    try:
        decoded = json.loads(body)
        content = decoded["choices"][0]["message"]["content"]
    except Exception as exc:  # noqa: BLE001
        raise LLMParserError("Unexpected LLM response format") from exc

    if not isinstance(content, str):
        raise LLMParserError("Unexpected LLM response format")
    return content


def decode_json_object(content: str) -> dict[str, Any]:
    """Decode the model's message content; anything but one JSON object is an error."""

    try:
        obj = json.loads(_strip_code_fences(content))
    except json.JSONDecodeError as exc:
        raise LLMParserError("LLM did not return valid JSON") from exc

    if not isinstance(obj, dict):
        raise LLMParserError("LLM JSON is not an object")
    return obj


def llm_config_from_settings(settings: Settings) -> LLMConfig | None:
    """Build the LLM config, or `None` when assisted parsing is disabled or has no key."""

    if not settings.llm_enabled or not settings.llm_api_key:
        return None
    return LLMConfig(
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        api_base=settings.llm_api_base,
        timeout_s=settings.llm_timeout_s,
        temperature=settings.llm_temperature,
    )


class AssistedParser:
    """Runs the LLM call with a timeout and validates its payload."""

    def __init__(self, config: LLMConfig, *, complete: ChatCompletion = chat_completion) -> None:
        self._config = config
        self._complete = complete

    async def parse(self, text: str) -> AIIntentPayload:
        """Ask the LLM for a payload.

        Raises:
            LLMParserError: On network/HTTP errors, timeout, non-JSON output, or a schema mismatch.
        """

        try:
            content = await asyncio.wait_for(
                asyncio.to_thread(
                    self._complete,
                    load_prompt(),
                    text,
                    temperature=self._config.temperature,
                    config=self._config,
                ),
                timeout=self._config.timeout_s,
            )
        except TimeoutError as exc:
            raise LLMParserError("LLM call timed out") from exc
        except (HTTPException, OSError) as exc:
            raise LLMParserError("LLM connection error") from exc

        obj = decode_json_object(content)
        try:
            return ai_payload_from_obj(obj)
        except ValidationError as exc:
            raise LLMParserError(f"LLM JSON does not match the schema ({exc.error_count()} errors)") from exc


def intent_from_ai_payload(text: str, payload: AIIntentPayload, *, now: datetime) -> ParsedIntent:
    """Reconcile a validated LLM payload with what the rules see in the text.

    - A transaction needs local money evidence (a currency token or a direction verb) and a
      positive amount (the LLM's, else the locally extracted one); otherwise it becomes a task or
      event.
    - Direction is always detected locally; the LLM amount sign is never used.
    - A local date cue (explicit date, anchor, weekday) always wins over the LLM date.
    """

    analysis = analyze(text, now.date())
    notes = [AI_NOTE]

    is_event = payload.isEvent or payload.type == IntentKind.event
    kind = payload.type
    amount = None
    direction = None

    if kind == IntentKind.transaction:
        amount = payload.amount if payload.amount else extract_amount(analysis.stripped)
        local_direction = detect_direction(analysis.stripped)
        has_evidence = has_currency_cue(analysis.stripped) or local_direction is not None
        if not has_evidence or amount is None:
            notes.append(NOT_FINANCE_NOTE)
            amount = None
            is_event = is_event or has_any_phrase(analysis.normalized, EVENT_MARKERS)
            kind = IntentKind.event if is_event else IntentKind.task
        else:
            direction = local_direction
            if direction is None:
                direction = Direction.expense
                notes.append(DEFAULT_DIRECTION_NOTE)
    elif is_event:
        kind = IntentKind.event

    all_day = kind == IntentKind.event
    if analysis.scan.has_date_cue:
        occurs_at = datetime_from_scan(analysis.scan, all_day=all_day, now=now)
        if payload.date:
            notes.append(LOCAL_DATE_NOTE)
    else:
        llm_date = parse_llm_date(payload.date, now=now)
        if llm_date is None:
            occurs_at = datetime_from_scan(analysis.scan, all_day=all_day, now=now)
            notes.append(AI_DATE_FALLBACK_NOTE)
            if not all_day and analysis.scan.clock is None:
                notes.append(DEFAULT_TIME_NOTE)
        elif all_day:
            occurs_at = datetime.combine(llm_date.date(), time.min, tzinfo=llm_date.tzinfo)
        else:
            occurs_at = llm_date

    tags = {t.strip().lower() for t in payload.tags if t.strip()} or infer_tags(text)
    category = None
    if kind == IntentKind.transaction:
        category = payload.category or infer_category(text)

    return ParsedIntent(
        kind=kind,
        title=payload.title or analysis.title,
        occurs_at=occurs_at,
        due_or_end_at=occurs_at if kind == IntentKind.task else None,
        amount=amount,
        direction=direction,
        category=category,
        tags=tags,
        confidence_notes=notes,
        source="llm",
    )
