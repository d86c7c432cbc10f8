"""Text-generation service used to read, match and correct forms."""
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Type

import openai
from openai import OpenAI
from pydantic import BaseModel, ValidationError

from supplier_forms.config import config
from supplier_forms.domain.exceptions import EmptyResponseError, InferenceError
from supplier_forms.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

_TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


class InferenceStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    SCHEMA_INVALID = "schema_invalid"
    FAILED = "failed"


@dataclass
class InferenceResult:
    """Outcome of one structured generation call.

    Only an ``OK`` result carries ``data``; every other status means
    "no usable result" and callers apply their own fallback.
    """
    status: InferenceStatus
    data: Any = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is InferenceStatus.OK

    @classmethod
    def success(cls, data: Any) -> "InferenceResult":
        return cls(InferenceStatus.OK, data=data)

    @classmethod
    def empty(cls, detail: str = "") -> "InferenceResult":
        return cls(InferenceStatus.EMPTY, detail=detail)

    @classmethod
    def schema_invalid(cls, detail: str) -> "InferenceResult":
        return cls(InferenceStatus.SCHEMA_INVALID, detail=detail)

    @classmethod
    def failed(cls, detail: str) -> "InferenceResult":
        return cls(InferenceStatus.FAILED, detail=detail)


def clean_response(response: str) -> str:
    """Extract the JSON payload from a model response.

    Handles markdown code fences, chatter around the JSON value and
    truncated output with unclosed braces or brackets.
    """
    ai_response = response.strip()

    fenced = _FENCED_BLOCK.search(ai_response)
    if fenced:
        ai_response = fenced.group(1).strip()
    else:
        starts = [i for i in (ai_response.find("{"), ai_response.find("[")) if i != -1]
        if starts:
            start = min(starts)
            closer = "}" if ai_response[start] == "{" else "]"
            end = ai_response.rfind(closer)
            ai_response = ai_response[start:end + 1] if end > start else ai_response[start:]

    return _close_truncated(ai_response)


def _close_truncated(text: str) -> str:
    """Append whatever closers a truncated JSON value is missing."""
    closers = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            closers.append("}" if char == "{" else "]")
        elif char in "}]" and closers:
            closers.pop()
    if in_string:
        text += '"'
    return text + "".join(reversed(closers))


def render_prompt(prompt_template: str, structured_input: Dict[str, Any]) -> str:
    values = {
        key: value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
        for key, value in structured_input.items()
    }
    return prompt_template.format(**values)


def parse_structured(raw: str, output_schema: Type[BaseModel]) -> InferenceResult:
    """Validate a raw model answer against ``output_schema``."""
    if not raw or not raw.strip():
        return InferenceResult.empty("The model returned an empty response")
    cleaned = clean_response(raw)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return InferenceResult.schema_invalid(f"Response is not valid JSON: {e}")
    try:
        data = output_schema.model_validate(payload)
    except ValidationError as e:
        return InferenceResult.schema_invalid(
            f"Response does not match {output_schema.__name__}: {e.error_count()} error(s)"
        )
    return InferenceResult.success(data)


class InferenceClient(ABC):
    """Contract for the external text-generation capability."""

    # Structured calls are re-sent this many times while the answer fails validation.
    schema_attempts = 1

    @abstractmethod
    def complete(
        self, prompt: str, json_mode: bool = True, attempt: int = 0, expected_items: int = 0
    ) -> str:
        """Return the model's raw text for ``prompt``.

        ``expected_items`` is an upper bound on the number of items the
        answer may list; it sizes the completion budget.
        Raises ``InferenceError`` when the service cannot produce an answer.
        """

    def generate(
        self,
        prompt_template: str,
        structured_input: Dict[str, Any],
        output_schema: Type[BaseModel],
        expected_items: int = 0,
    ) -> InferenceResult:
        prompt = render_prompt(prompt_template, structured_input)
        result = InferenceResult.empty()
        for attempt in range(self.schema_attempts):
            try:
                raw = self.complete(
                    prompt, json_mode=True, attempt=attempt, expected_items=expected_items
                )
            except InferenceError as e:
                logger.warning("Text generation failed: %s", e)
                return InferenceResult.failed(str(e))

            result = parse_structured(raw, output_schema)
            if result.status is not InferenceStatus.SCHEMA_INVALID:
                return result
            logger.warning(
                "Discarding invalid %s answer (attempt %d/%d): %s",
                output_schema.__name__, attempt + 1, self.schema_attempts, result.detail,
            )
        return result

    def generate_text(self, prompt_template: str, structured_input: Dict[str, Any]) -> str:
        """Free-text generation; there is no safe default, so blank output raises."""
        prompt = render_prompt(prompt_template, structured_input)
        text = self.complete(prompt, json_mode=False)
        if not text or not text.strip():
            raise EmptyResponseError("The AI service returned an empty response.")
        return text.strip()


class OpenAIInferenceClient(InferenceClient):
    """Inference client backed by an OpenAI-compatible chat completion API."""

    schema_attempts = 2

    def __init__(self, ai_config=None, client: Optional[OpenAI] = None, sleep=time.sleep):
        self.config = ai_config or config.ai
        self.client = client or OpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            max_retries=0,
        )
        self._sleep = sleep

    def _estimate_tokens(self, expected_items: int, attempt: int) -> int:
        """Estimate the completion budget from the size of the expected answer.

        The budget grows after a truncated answer but never exceeds
        ``max_output_tokens``.
        """
        estimate = max(
            self.config.base_tokens,
            expected_items * self.config.tokens_per_item + self.config.token_buffer,
        )
        return min(int(estimate * (1.5 ** attempt)), self.config.max_output_tokens)

    def _call_ai(self, prompt: str, max_tokens: int, json_mode: bool) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        request = dict(
            model=self.config.model,
            messages=messages,
            temperature=self.config.temperature,
            max_tokens=max_tokens,
        )
        if json_mode:
            try:
                response = self.client.chat.completions.create(
                    response_format={"type": "json_object"}, **request
                )
            except openai.BadRequestError:
                # Some compatible servers reject response_format.
                response = self.client.chat.completions.create(**request)
        else:
            response = self.client.chat.completions.create(**request)
        return (response.choices[0].message.content or "").strip()

    def complete(
        self, prompt: str, json_mode: bool = True, attempt: int = 0, expected_items: int = 0
    ) -> str:
        """Call the API, retrying transient failures with a growing delay."""
        max_tokens = self._estimate_tokens(expected_items, attempt)

        for retry in range(1, self.config.max_retries + 1):
            try:
                return self._call_ai(prompt, max_tokens, json_mode)
            except _TRANSIENT_ERRORS as e:
                if retry < self.config.max_retries:
                    delay = self.config.retry_delay_seconds * retry
                    logger.warning(
                        "AI service unavailable (%s). Attempt %d of %d, retrying in %.1fs",
                        type(e).__name__, retry, self.config.max_retries, delay,
                    )
                    self._sleep(delay)
                    continue
                raise InferenceError(
                    f"The AI service is temporarily unavailable after {self.config.max_retries} attempts: {e}"
                ) from e
            except openai.OpenAIError as e:
                raise InferenceError(f"Error calling AI API: {e}") from e

        raise InferenceError("Failed to generate a response after all retries")
