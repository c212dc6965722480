"""Sanitize, repair and canonicalize raw model output into MCQ records.

Structured-output models still fail in a handful of recurring ways: they wrap
JSON in markdown fences, emit LaTeX commands with single backslashes, get cut
off at the token limit mid-record, wrap the array in an object, and drift
between field names from one call to the next. ``parse_mcqs`` runs the repair
steps only when a strict parse fails, so valid output is never rewritten.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .exceptions import MalformedOutputError
from .models import DEFAULT_OPTION_LABEL, MCQ, OPTION_LABELS

logger = logging.getLogger(__name__)

MISSING_QUESTION_TEXT = "No question provided"

# Canonical field -> accepted source field names, in probing order.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "question": ("question", "Question", "question_text", "questionText", "text"),
    "options": ("options", "Options", "choices", "Choices", "answer_options"),
    "correct_answer": (
        "correctAnswer",
        "correct_answer",
        "answer",
        "Answer",
        "correct_option",
        "correctOption",
        "selected_option",
    ),
    "explanation": ("explanation", "Explanation", "reasoning", "rationale"),
}

# Keys probed for the record array when the top level is an object.
WRAPPER_KEYS = ("mcqs", "questions", "answers", "results", "items", "data")

# Keys of an option given as an object inside an options array.
OPTION_LABEL_KEYS = ("label", "key", "letter", "id")
OPTION_TEXT_KEYS = ("text", "value", "option", "content")

_LEADING_FENCE = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```\s*$")
# A valid escape is matched as a unit so its backslash is left alone.
_BACKSLASH = re.compile(r'\\(u[0-9a-fA-F]{4}|["\\/bfnrt])|\\')
# A bare leading letter is not enough: "Berlin" must not resolve to B.
_ANSWER_LABEL = re.compile(r"^\(?([A-Da-d])(?:$|[\s).:\]\-,])")

RAW_EXCERPT_LENGTH = 1000


def strip_code_fences(text: str) -> str:
    """Remove a markdown fence wrapping the whole text.

    Fence markers inside the document are content and are kept.
    """
    text = _LEADING_FENCE.sub("", text)
    return _TRAILING_FENCE.sub("", text).strip()


def escape_invalid_backslashes(text: str) -> str:
    """Double every backslash that does not start a legal JSON escape."""
    return _BACKSLASH.sub(lambda m: m.group(0) if m.group(1) else "\\\\", text)


def _scan_structure(text: str) -> Tuple[List[str], bool, Optional[Tuple[int, List[str]]]]:
    """Walk the text outside string literals.

    Returns:
        (open container stack, whether a string literal is still open,
        (end index, stack) just after the last closed object, if any)
    """
    stack: List[str] = []
    in_string = False
    escaped = False
    last_object_end: Optional[Tuple[int, List[str]]] = None

    for index, char in enumerate(text):
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
            stack.append(char)
        elif char in "}]":
            if stack:
                stack.pop()
            if char == "}":
                last_object_end = (index + 1, list(stack))
    return stack, in_string, last_object_end


def _closers(stack: Sequence[str]) -> str:
    return "".join("}" if opener == "{" else "]" for opener in reversed(stack))


def _parses(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def repair_truncated_json(text: str) -> str:
    """Close a JSON document that was cut off mid-stream.

    Closes an open string literal, then every open object/array in nesting
    order. If that is still not valid (e.g. the cut fell between a key and
    its value), falls back to the end of the last complete object.
    """
    stack, in_string, last_object_end = _scan_structure(text)
    if not stack and not in_string:
        return text

    repaired = text
    if in_string:
        if repaired.endswith("\\") and not repaired.endswith("\\\\"):
            repaired = repaired[:-1]
        repaired += '"'
    repaired += _closers(stack)
    if _parses(repaired):
        return repaired

    if last_object_end is not None:
        end, open_stack = last_object_end
        candidate = text[:end] + _closers(open_stack)
        if _parses(candidate):
            logger.info("Truncated JSON repaired by dropping the incomplete tail")
            return candidate
    return repaired


def sanitize_json_text(text: Optional[str]) -> str:
    """Turn raw model output into text that should parse as JSON.

    Already-valid JSON is returned untouched.
    """
    if not text:
        return ""

    if _parses(text):
        return text
    text = strip_code_fences(text)
    if _parses(text):
        return text

    text = escape_invalid_backslashes(text)

    stack, in_string, _ = _scan_structure(text)
    if not text.endswith(("]", "}")) or stack or in_string:
        logger.info("Attempting to repair truncated JSON...")
        text = repair_truncated_json(text)
    return text


def _looks_like_record(value: Dict[str, Any]) -> bool:
    return any(
        alias in value
        for field in ("question", "options")
        for alias in FIELD_ALIASES[field]
    )


def extract_record_list(payload: Any) -> List[Any]:
    """Find the list of records in a parsed payload.

    Raises:
        MalformedOutputError: If no record list can be found
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                return payload[key]
        if _looks_like_record(payload):
            return [payload]
    raise MalformedOutputError(
        "Invalid response format: expected array of MCQs",
        raw_excerpt=str(payload)[:RAW_EXCERPT_LENGTH],
    )


def _first_present(record: Dict[str, Any], canonical: str) -> Any:
    """Value of the first alias present with a truthy value."""
    for name in FIELD_ALIASES[canonical]:
        value = record.get(name)
        if value not in (None, ""):
            return value
    return None


def _option_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        for key in OPTION_TEXT_KEYS:
            if value.get(key) is not None:
                return str(value[key])
        return ""
    return str(value)


def normalize_options(options: Any) -> Dict[str, str]:
    """Map any supported options shape onto the four labelled slots."""
    normalized = {label: "" for label in OPTION_LABELS}
    if not options:
        return normalized

    if isinstance(options, list):
        labelled = [
            item
            for item in options
            if isinstance(item, dict)
            and any(str(item.get(k, "")).upper() in OPTION_LABELS for k in OPTION_LABEL_KEYS)
        ]
        if labelled and len(labelled) == len(options):
            for item in labelled:
                label = next(
                    str(item[k]).upper()
                    for k in OPTION_LABEL_KEYS
                    if str(item.get(k, "")).upper() in OPTION_LABELS
                )
                normalized[label] = _option_text(item)
            return normalized
        for label, value in zip(OPTION_LABELS, options):
            normalized[label] = _option_text(value)
        return normalized

    if isinstance(options, dict):
        by_label: Dict[str, Any] = {}
        for key, value in options.items():
            label = str(key).strip().rstrip(").:").upper()
            if label in OPTION_LABELS and label not in by_label:
                by_label[label] = value
        for label in OPTION_LABELS:
            normalized[label] = _option_text(by_label.get(label))
    return normalized


def extract_answer_label(answer: Any, options: Dict[str, str]) -> str:
    """Recover the correct option label from free-form answer text.

    Accepts "B", "b", "B) text", "(C)", "D. text"; an answer equal to one of
    the option texts maps to that option. Falls back to the first label.
    """
    if answer is None:
        return DEFAULT_OPTION_LABEL
    text = str(answer).strip()
    if not text:
        return DEFAULT_OPTION_LABEL

    match = _ANSWER_LABEL.match(text)
    if match:
        return match.group(1).upper()

    lowered = text.casefold()
    for label, option in options.items():
        if option and option.strip().casefold() == lowered:
            return label
    return DEFAULT_OPTION_LABEL


def normalize_mcq(record: Any) -> Optional[MCQ]:
    """Canonicalize one raw record; None if it is not an object."""
    if not isinstance(record, dict):
        return None

    options = normalize_options(_first_present(record, "options"))
    question = _first_present(record, "question")
    explanation = _first_present(record, "explanation")
    return MCQ(
        question=str(question) if question is not None else MISSING_QUESTION_TEXT,
        options=options,
        correct_answer=extract_answer_label(
            _first_present(record, "correct_answer"), options
        ),
        explanation=str(explanation) if explanation is not None else "",
    )


def normalize_records(records: Sequence[Any]) -> List[MCQ]:
    """Canonicalize records, dropping non-objects with a warning.

    Raises:
        MalformedOutputError: If records were present but none survived
    """
    valid: List[MCQ] = []
    for index, record in enumerate(records):
        normalized = normalize_mcq(record)
        if normalized is None:
            logger.warning(f"Empty/invalid MCQ skipped at index {index}")
            continue
        valid.append(normalized)

    if records and not valid:
        raise MalformedOutputError(
            "All generated MCQs were malformed. Please try again or refine "
            "your material."
        )
    return valid


def parse_mcqs(raw_text: Optional[str]) -> List[MCQ]:
    """Full pipeline: sanitize, parse, unwrap and canonicalize model output.

    Returns an empty list when the model legitimately returned no records.

    Raises:
        MalformedOutputError: If the text cannot be parsed, holds no record
            list, or every record was malformed
    """
    text = sanitize_json_text(raw_text)
    try:
        payload = json.loads(text)
    except ValueError as e:
        excerpt = (raw_text or "")[:RAW_EXCERPT_LENGTH]
        logger.error(f"JSON parse error: {e}. Raw text: {excerpt}")
        raise MalformedOutputError(
            "Failed to parse AI response as JSON. The AI may have returned an "
            "invalid format.",
            raw_excerpt=excerpt,
        ) from e

    return normalize_records(extract_record_list(payload))
