"""
Recovery of JSON payloads from free-form model output.

Model responses are supposed to be a JSON array of triples, but in practice
they arrive wrapped in fenced code blocks, cut off by the token limit, or with
trailing commas. ``parse_model_json`` runs a fixed cascade of parser stages and
returns a tagged ``JsonExtraction`` describing which stage succeeded and why
the earlier ones did not.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional, Tuple

logger = logging.getLogger(__name__)

CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
TRAILING_COMMA_PATTERN = re.compile(r",(\s*[}\]])")

# Stage names, in cascade order
STAGE_CODE_BLOCK = "code_block"
STAGE_DIRECT = "direct"
STAGE_OBJECT = "object"
STAGE_ARRAY = "array"
STAGE_TRAILING_COMMAS = "trailing_commas"
STAGE_SALVAGE = "salvage"

ExtractionStatus = Literal["success", "partial", "failure"]


@dataclass
class JsonExtraction:
    """Outcome of running the repair cascade over one model response."""
    status: ExtractionStatus
    value: Any = None
    stage: Optional[str] = None
    attempts: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != "failure"

    def describe_failures(self) -> str:
        return "; ".join(f"{stage}: {reason}" for stage, reason in self.attempts)


@dataclass
class _ParseAttempt:
    ok: bool
    value: Any = None
    reason: str = ""


def _try_parse(text: str) -> _ParseAttempt:
    try:
        return _ParseAttempt(ok=True, value=json.loads(text))
    except (json.JSONDecodeError, ValueError) as e:
        return _ParseAttempt(ok=False, reason=str(e))


def _find_matching_close(text: str, start: int, open_char: str, close_char: str) -> int:
    """
    Index of the delimiter closing the one at ``start``, or -1 if the text ends first.

    Delimiters inside JSON string literals are ignored.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return i
    return -1


def strip_code_block(text: str) -> str:
    """Inner content of the first fenced code block, or the trimmed text if none."""
    match = CODE_BLOCK_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return text.strip()


def strip_trailing_commas(text: str) -> str:
    return TRAILING_COMMA_PATTERN.sub(r"\1", text)


def extract_complete_objects(text: str) -> List[Any]:
    """Parse every complete, balanced ``{...}`` object in ``text`` independently."""
    objects: List[Any] = []
    position = 0
    while True:
        start = text.find("{", position)
        if start == -1:
            break
        end = _find_matching_close(text, start, "{", "}")
        if end == -1:
            # Truncated object at the end of the text
            break
        attempt = _try_parse(text[start:end + 1])
        if attempt.ok:
            objects.append(attempt.value)
        else:
            logger.debug(f"Skipping unparseable object at offset {start}: {attempt.reason}")
        position = end + 1
    return objects


def parse_model_json(raw_text: Optional[str]) -> JsonExtraction:
    """
    Run the repair cascade over a model response.

    Stages, returning at the first success:
    1. Strip a fenced code block, keeping its content
    2. Parse the text directly
    3. Without a ``[``: parse the first balanced ``{...}`` object
    4. Parse the first balanced ``[...]`` array
    5. Retry the array with trailing commas removed
    6. Salvage each complete object inside the array

    Args:
        raw_text: Model response text

    Returns:
        JsonExtraction tagged success, partial (salvaged objects only) or failure
    """
    attempts: List[Tuple[str, str]] = []

    if not raw_text or not raw_text.strip():
        return JsonExtraction(status="failure", attempts=[(STAGE_DIRECT, "empty response")])

    json_text = strip_code_block(raw_text)

    direct = _try_parse(json_text)
    if direct.ok:
        return JsonExtraction(status="success", value=direct.value, stage=STAGE_DIRECT)
    attempts.append((STAGE_DIRECT, direct.reason))

    array_start = json_text.find("[")
    if array_start == -1:
        object_start = json_text.find("{")
        if object_start == -1:
            attempts.append((STAGE_OBJECT, "no JSON array or object found"))
            return JsonExtraction(status="failure", attempts=attempts)

        object_end = _find_matching_close(json_text, object_start, "{", "}")
        if object_end == -1:
            attempts.append((STAGE_OBJECT, "object is not closed"))
            return JsonExtraction(status="failure", attempts=attempts)

        parsed = _try_parse(json_text[object_start:object_end + 1])
        if parsed.ok:
            return JsonExtraction(
                status="success", value=parsed.value, stage=STAGE_OBJECT, attempts=attempts
            )
        attempts.append((STAGE_OBJECT, parsed.reason))
        return JsonExtraction(status="failure", attempts=attempts)

    array_end = _find_matching_close(json_text, array_start, "[", "]")
    if array_end == -1:
        attempts.append((STAGE_ARRAY, "array is not closed"))
        candidate = json_text[array_start:]
    else:
        candidate = json_text[array_start:array_end + 1]

        parsed = _try_parse(candidate)
        if parsed.ok:
            return JsonExtraction(
                status="success", value=parsed.value, stage=STAGE_ARRAY, attempts=attempts
            )
        attempts.append((STAGE_ARRAY, parsed.reason))

        repaired = _try_parse(strip_trailing_commas(candidate))
        if repaired.ok:
            return JsonExtraction(
                status="success", value=repaired.value, stage=STAGE_TRAILING_COMMAS,
                attempts=attempts
            )
        attempts.append((STAGE_TRAILING_COMMAS, repaired.reason))

    objects = extract_complete_objects(candidate)
    if objects:
        return JsonExtraction(status="partial", value=objects, stage=STAGE_SALVAGE, attempts=attempts)

    attempts.append((STAGE_SALVAGE, "no complete objects"))
    return JsonExtraction(status="failure", attempts=attempts)


def extract_json(raw_text: Optional[str]) -> Any:
    """
    Parsed JSON value salvaged from model output, or None.

    >>> extract_json('```json\\n[{"a": 1},]\\n```')
    [{'a': 1}]
    """
    result = parse_model_json(raw_text)
    if not result.ok:
        logger.debug(f"JSON extraction failed: {result.describe_failures()}")
        return None
    return result.value
