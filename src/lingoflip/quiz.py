"""Quiz session: generated multiple-choice questions, a cursor and the answers given."""
import logging
import math
import random
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, Optional, Sequence

from lingoflip.errors import AlreadyAnsweredError, NoCardsSelectedError, QuizGenerationError
from lingoflip.models import Flashcard, MCQItem, MCQOption, UserAnswer
from lingoflip.placeholders import ERROR_MARKER

logger = logging.getLogger(__name__)


def is_valid_mcq(item: Optional[MCQItem]) -> bool:
    """A question can be asked: text present, not an error placeholder, exactly one correct option."""
    if item is None or not item.options or not item.question:
        return False
    if ERROR_MARKER in item.question:
        return False
    return sum(1 for o in item.options if o.is_correct) == 1


def display_options(item: MCQItem, rng: Optional[random.Random] = None) -> list[MCQOption]:
    """A freshly shuffled copy of the options for one display of the question."""
    options = list(item.options)
    (rng or random.Random()).shuffle(options)
    return options


class Quiz:
    def __init__(self, questions: Sequence[MCQItem], rng: Optional[random.Random] = None) -> None:
        self.questions = list(questions)
        self.total = len(self.questions)
        self.cursor = 0
        self.answers: list[UserAnswer] = []
        self.rng = rng or random.Random()

    def __repr__(self) -> str:
        return f"Quiz(total={self.total}, cursor={self.cursor}, answered={len(self.answers)})"

    @property
    def current(self) -> Optional[MCQItem]:
        return self.questions[self.cursor] if self.questions else None

    @property
    def has_next(self) -> bool:
        return self.cursor < len(self.questions) - 1

    def answer_for(self, question_id: str) -> Optional[UserAnswer]:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None

    def is_answered(self, question_id: str) -> bool:
        return self.answer_for(question_id) is not None

    def record_answer(self, question_id: str, selected_option_text: str, is_correct: bool) -> UserAnswer:
        if self.is_answered(question_id):
            raise AlreadyAnsweredError("This question has already been answered.")
        answer = UserAnswer(question_id, selected_option_text, is_correct)
        self.answers.append(answer)
        return answer

    def advance(self) -> bool:
        if not self.has_next:
            return False
        self.cursor += 1
        return True

    def score(self) -> int:
        return sum(1 for a in self.answers if a.is_correct)

    def percentage(self) -> int:
        if not self.total:
            return 0
        # round half up: 2.5 -> 3
        return math.floor(100 * self.score() / self.total + 0.5)

    def retry(self, rng: Optional[random.Random] = None) -> None:
        if rng is not None:
            self.rng = rng
        self.cursor = 0
        self.answers = []
        self.rng.shuffle(self.questions)

    def clone(self) -> "Quiz":
        other = Quiz(self.questions, rng=self.rng)
        other.total = self.total
        other.cursor = self.cursor
        other.answers = list(self.answers)
        return other


def start_quiz(
    generator,
    flashcards: Iterable[Flashcard],
    selected_ids: Sequence[str],
    rng: Optional[random.Random] = None,
    max_workers: int = 8,
) -> Quiz:
    """
    Generate one question per selected flashcard and return a shuffled quiz.

    Requests run concurrently and the batch waits for all of them. A request
    that raises is dropped; invalid items are discarded. Raises
    NoCardsSelectedError for an empty selection and QuizGenerationError when
    no valid question survives.
    """
    if not selected_ids:
        raise NoCardsSelectedError("Please select at least one card to start a test.")
    wanted = set(selected_ids)
    cards = [c for c in flashcards if c.id in wanted]
    if not cards:
        raise NoCardsSelectedError("No valid cards found for the test based on selection.")

    results: dict[str, Optional[MCQItem]] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(cards)))) as pool:
        futures = {pool.submit(generator.generate_mcq, card): card for card in cards}
        for future in as_completed(futures):
            card = futures[future]
            try:
                results[card.id] = future.result()
            except Exception as e:
                logger.warning("Question generation for %r failed: %s", card.word, e)
                results[card.id] = None

    items = [results[c.id] for c in cards]
    valid = [item for item in items if is_valid_mcq(item)]
    if len(valid) < len(items):
        logger.info("Discarded %d invalid questions out of %d", len(items) - len(valid), len(items))
    if not valid:
        raise QuizGenerationError(
            "Could not generate any valid test questions for the selected cards. "
            "Please try again or select different cards."
        )
    rng = rng or random.Random()
    rng.shuffle(valid)
    return Quiz(valid, rng=rng)
