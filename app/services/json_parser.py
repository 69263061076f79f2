import json
import logging
import re

from app.core.metrics import increment_json_parse_failure

logger = logging.getLogger(__name__)


def _strip_markdown_fences(text: str) -> str:
    """Remove markdown code fences from LLM output."""
    patterns = [
        r"```json\s*\n?(.*?)\n?```",
        r"```\s*\n?(.*?)\n?```",
    ]
    for pattern in patterns:
        match = re.search(pattern, text, re.DOTALL | re.IGNORECASE)
        if match:
            return match.group(1).strip()
    return text


def _clean_json_text(text: str) -> str:
    """Clean common LLM JSON output issues."""
    cleaned = _strip_markdown_fences(text.strip())

    lines = cleaned.split("\n")

    start_idx = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("{") or stripped.startswith("["):
            start_idx = i
            break

    end_idx = len(lines) - 1
    for i in range(len(lines) - 1, -1, -1):
        stripped = lines[i].strip()
        if stripped.endswith("}") or stripped.endswith("]"):
            end_idx = i
            break

    cleaned = "\n".join(lines[start_idx : end_idx + 1])
    cleaned = re.sub(r",\s*([}\]])", r"\1", cleaned)

    return cleaned.strip()


def _extract_balanced(text: str, opener: str, closer: str) -> str | None:
    start = text.find(opener)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


def _extract_json_object(text: str) -> str | None:
    """Extract the first balanced JSON object using bracket matching."""
    return _extract_balanced(text, "{", "}")


def _extract_json_array(text: str) -> str | None:
    """Extract the first balanced JSON array using bracket matching."""
    return _extract_balanced(text, "[", "]")


def parse_json_response(text: str, *, allow_array: bool = False) -> dict | list | None:
    """
    Multi-tier JSON extraction from model text.

    Tries the raw text, then a cleaned copy, then the first balanced object
    (and optionally array). Returns None when every tier fails; each failed
    tier is counted in metrics.
    """
    if not text or not text.strip():
        increment_json_parse_failure("empty")
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        increment_json_parse_failure("direct")

    try:
        return json.loads(_clean_json_text(text))
    except json.JSONDecodeError:
        increment_json_parse_failure("cleaned")

    obj_text = _extract_json_object(text)
    if obj_text:
        try:
            return json.loads(obj_text)
        except json.JSONDecodeError:
            increment_json_parse_failure("object")

    if allow_array:
        arr_text = _extract_json_array(text)
        if arr_text:
            try:
                return json.loads(arr_text)
            except json.JSONDecodeError:
                increment_json_parse_failure("array")

    logger.warning(
        "All JSON parsing methods failed. length=%d preview=%s",
        len(text),
        text[:300],
    )
    return None
