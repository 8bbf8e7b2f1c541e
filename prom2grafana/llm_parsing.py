from __future__ import annotations

import json
import re
from typing import Any, Optional

from pydantic import ValidationError

from prom2grafana.errors import ResponseParseError
from prom2grafana.models import DashboardResponse

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
_FENCED_ANY_RE = re.compile(r"```\s*([\s\S]*?)```")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _balanced_json_slice(s: str) -> Optional[str]:
    """Return the first brace-balanced {...} slice, ignoring braces inside strings."""
    in_str = False
    esc = False
    depth = 0
    start_idx = -1
    for i, ch in enumerate(s):
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            if depth == 0:
                start_idx = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start_idx != -1:
                return s[start_idx : i + 1]
    return None


def _json_from_text(text: str) -> Any:
    """Extract a JSON object from model text; raise ValueError on failure.

    Strategy:
    - Try the whole text as JSON.
    - Try fenced blocks: ```json ...``` first, then any ``` ... ```.
    - Try the first balanced {...} object.
    - Sanitize: remove trailing commas, normalize smart quotes.
    """
    t = (text or "").strip()
    if not t:
        raise ValueError("empty response content")

    try:
        return json.loads(t)
    except json.JSONDecodeError:
        pass

    candidate = None
    m = _FENCED_JSON_RE.search(t) or _FENCED_ANY_RE.search(t)
    if m:
        candidate = m.group(1).strip()
    if not candidate:
        candidate = _balanced_json_slice(t)
    if not candidate:
        raise ValueError("no JSON object found in response content")

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    s = _TRAILING_COMMA_RE.sub(r"\1", candidate)
    s = s.replace("“", '"').replace("”", '"')
    try:
        return json.loads(s)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON in response content: {exc}") from exc


def parse_dashboard_response(text: str) -> DashboardResponse:
    """Parse a model's message content into a DashboardResponse.

    The JSON envelope is extracted leniently; the two fields are validated
    strictly. Raises ResponseParseError.
    """
    try:
        data = _json_from_text(text)
    except ValueError as exc:
        raise ResponseParseError(str(exc)) from exc
    if not isinstance(data, dict):
        raise ResponseParseError(f"expected a JSON object, got {type(data).__name__}")
    try:
        return DashboardResponse.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in e.get('loc', ())) or '(root)'}: {e.get('msg', 'invalid')}"
            for e in exc.errors()
        )
        raise ResponseParseError(f"response does not match schema: {problems}") from exc
