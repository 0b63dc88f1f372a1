"""
Tolerant parsing of JSON-ish model output.

The generator asks for JSON but models wrap it in code fences, add commentary,
or emit almost-JSON. Parsing is an ordered chain of steps; each returns a
ParseResult and the first success wins:

  1. strict_json              json.loads on the trimmed text
  2. fenced_json              strip ```json fences / surrounding prose, then json.loads
  3. flashcard_array_pattern  regex-extract {"word","definition","exampleSentence"} objects
  4. mcq_pattern              regex-extract a single MCQ object
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Sequence

logger = logging.getLogger(__name__)

_STR = r'"((?:\\.|[^"\\])*)"'
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?\s*```", re.S)
_FLASHCARD_RE = re.compile(
    r'\{\s*"word"\s*:\s*' + _STR
    + r'\s*,\s*"definition"\s*:\s*' + _STR
    + r'\s*,\s*"example_?[sS]entence"\s*:\s*' + _STR + r'\s*\}'
)
_MCQ_RE = re.compile(
    r'\{\s*(?:"?word"?\s*:\s*' + _STR + r'\s*,)?'
    r'\s*"?questionSentence"?\s*:\s*' + _STR
    + r'\s*,\s*"?correctAnswer"?\s*:\s*' + _STR
    + r'\s*,\s*"?distractors"?\s*:\s*\[\s*' + _STR + r'\s*,\s*' + _STR + r'\s*,\s*' + _STR + r'\s*\]'
    + r'\s*,\s*"?explanation"?\s*:\s*' + _STR + r'\s*\}',
    re.S | re.I,
)


@dataclass(frozen=True)
class ParseResult:
    ok: bool
    value: Any = None
    step: str = ""

    @classmethod
    def failed(cls, step: str) -> "ParseResult":
        return cls(ok=False, step=step)


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value.replace('\\"', '"')


def strict_json(text: str) -> ParseResult:
    try:
        return ParseResult(True, json.loads(text.strip()), "strict_json")
    except ValueError:
        return ParseResult.failed("strict_json")


def _outer_span(text: str) -> str | None:
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    end = text.rfind("]" if text[start] == "[" else "}")
    return text[start:end + 1] if end > start else None


def fenced_json(text: str) -> ParseResult:
    candidates = []
    match = _FENCE_RE.search(text)
    if match:
        candidates.append(match.group(1).strip())
    span = _outer_span(candidates[0] if candidates else text)
    if span:
        candidates.append(span)
    for candidate in candidates:
        try:
            return ParseResult(True, json.loads(candidate), "fenced_json")
        except ValueError:
            continue
    return ParseResult.failed("fenced_json")


def flashcard_array_pattern(text: str) -> ParseResult:
    cards = [
        {"word": _unescape(w), "definition": _unescape(d), "exampleSentence": _unescape(e)}
        for w, d, e in _FLASHCARD_RE.findall(text)
    ]
    if not cards:
        return ParseResult.failed("flashcard_array_pattern")
    logger.warning("Recovered %d flashcard objects via pattern extraction", len(cards))
    return ParseResult(True, cards, "flashcard_array_pattern")


def mcq_pattern(text: str) -> ParseResult:
    match = _MCQ_RE.search(text)
    if not match:
        return ParseResult.failed("mcq_pattern")
    _, question, answer, d1, d2, d3, explanation = match.groups()
    logger.warning("Recovered MCQ object via pattern extraction")
    return ParseResult(True, {
        "questionSentence": _unescape(question),
        "correctAnswer": _unescape(answer),
        "distractors": [_unescape(d1), _unescape(d2), _unescape(d3)],
        "explanation": _unescape(explanation),
    }, "mcq_pattern")


Parser = Callable[[str], ParseResult]

FLASHCARD_PARSERS: tuple[Parser, ...] = (strict_json, fenced_json, flashcard_array_pattern)
MCQ_PARSERS: tuple[Parser, ...] = (strict_json, fenced_json, mcq_pattern)


def parse_model_json(text: str, parsers: Sequence[Parser] = FLASHCARD_PARSERS) -> ParseResult:
    """Run parsers in order and return the first successful result."""
    if not text or not text.strip():
        return ParseResult.failed("empty")
    for parser in parsers:
        result = parser(text)
        if result.ok:
            if result.step != "strict_json":
                logger.info("Model output parsed by %s", result.step)
            return result
    logger.warning("Model output could not be parsed: %.200s", text)
    return ParseResult.failed("exhausted")


def extract_array(value: Any) -> list | None:
    """A bare list, or the first list-valued key of an object."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for item in value.values():
            if isinstance(item, list):
                return item
    return None
