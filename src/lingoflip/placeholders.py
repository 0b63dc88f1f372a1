"""Placeholder content used when the generator is unconfigured or fails."""
import random
import re
import time
from typing import Optional

from lingoflip.models import Flashcard, GeneratedCard, MCQItem, MCQOption

BLANK = "______"
ERROR_MARKER = "(Error generating:"
MISSING_KEY_MARKER = "(Practice question - API key missing)"
PLACEHOLDER_DISTRACTORS = ("Option A", "Option B", "Option C")


def mcq_id(flashcard_id: str) -> str:
    return f"mcq-{flashcard_id}-{int(time.time() * 1000)}"


def blank_out(sentence: str, word: str) -> str:
    """Replace every whole-word, case-insensitive occurrence of ``word`` with a blank."""
    if not word:
        return sentence
    return re.sub(rf"\b{re.escape(word)}\b", BLANK, sentence, flags=re.I)


def placeholder_flashcards(topic: str, count: int, definitions: Optional[list[str]] = None) -> list[GeneratedCard]:
    if definitions:
        return [
            GeneratedCard(
                word=f"Placeholder word {i} for {topic}",
                definition=definition,
                example_sentence=f"This is a placeholder example sentence for word {i}.",
            )
            for i, definition in enumerate(definitions, 1)
        ]
    return [
        GeneratedCard(
            word=f"Placeholder word {i} for {topic}",
            definition="This is a placeholder definition as the API key is not configured.",
            example_sentence=f"This is a placeholder example sentence for word {i}.",
        )
        for i in range(1, count + 1)
    ]


def _options(word: str, rng: random.Random) -> list[MCQOption]:
    options = [MCQOption(word, True)] + [MCQOption(d, False) for d in PLACEHOLDER_DISTRACTORS]
    rng.shuffle(options)
    return options


def placeholder_mcq(flashcard: Flashcard, rng: Optional[random.Random] = None) -> MCQItem:
    """Usable practice question built locally when no API key is configured."""
    rng = rng or random.Random()
    return MCQItem(
        id=mcq_id(flashcard.id),
        flashcard_id=flashcard.id,
        question=f"{blank_out(flashcard.example_sentence, flashcard.word)} {MISSING_KEY_MARKER}",
        options=_options(flashcard.word, rng),
        explanation=f'"{flashcard.word}" means: {flashcard.definition}',
        original_word=flashcard.word,
    )


def error_mcq(flashcard: Flashcard, reason: str, rng: Optional[random.Random] = None) -> MCQItem:
    """Visibly-marked fallback for a failed generation; filtered out of quizzes."""
    rng = rng or random.Random()
    return MCQItem(
        id=mcq_id(flashcard.id),
        flashcard_id=flashcard.id,
        question=f"{blank_out(flashcard.example_sentence, flashcard.word)} {ERROR_MARKER} {reason})",
        options=_options(flashcard.word, rng),
        explanation=f"Could not generate explanation due to error: {reason}",
        original_word=flashcard.word,
    )
