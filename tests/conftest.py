import random

import pytest

from lingoflip.controller import StudyController
from lingoflip.local_store import LocalStore
from lingoflip.models import GeneratedCard, MCQItem, MCQOption


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_lingoflip.db")
    return db_path


@pytest.fixture
def local_store(tmp_db, tmp_path):
    return LocalStore(tmp_db, session_path=tmp_path / "session.json")


class FakeGenerator:
    """Deterministic stand-in for the Gemini client."""

    def __init__(self, invalid_words=(), failing_words=(), card_limit=None, flashcard_error=None):
        self.invalid_words = set(invalid_words)
        self.failing_words = set(failing_words)
        self.card_limit = card_limit
        self.flashcard_error = flashcard_error
        self.flashcard_calls = []
        self.mcq_calls = []
        self.closed = False

    def close(self):
        self.closed = True

    def generate_flashcards(self, topic, count, existing_definitions=(), definitions=None):
        self.flashcard_calls.append({
            "topic": topic, "count": count,
            "existing_definitions": list(existing_definitions),
            "definitions": list(definitions) if definitions else None,
        })
        if self.flashcard_error is not None:
            raise self.flashcard_error
        if definitions:
            cards = [GeneratedCard(f"word{i}", d, f"An example with word{i}.") for i, d in enumerate(definitions)]
        else:
            cards = [
                GeneratedCard(f"{topic} word {i}", f"{topic} definition {i}", f"Example {i}.")
                for i in range(count)
            ]
        return cards[:self.card_limit] if self.card_limit is not None else cards

    def generate_mcq(self, flashcard):
        self.mcq_calls.append(flashcard.id)
        if flashcard.word in self.failing_words:
            raise RuntimeError("boom")
        options = [] if flashcard.word in self.invalid_words else [
            MCQOption(flashcard.word, True),
            MCQOption("alpha", False),
            MCQOption("beta", False),
            MCQOption("gamma", False),
        ]
        return MCQItem(
            id=f"mcq-{flashcard.id}",
            flashcard_id=flashcard.id,
            question=f"Fill in: ______ ({flashcard.definition})",
            options=options,
            explanation=f"{flashcard.word} fits.",
            original_word=flashcard.word,
        )


@pytest.fixture
def make_generator():
    return FakeGenerator


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def controller(local_store, fake_generator):
    ctl = StudyController(local_store, fake_generator, rng=random.Random(7), max_workers=2)
    ctl.resolve_session()
    return ctl


@pytest.fixture
def signed_in(controller):
    controller.sign_up("learner@example.com", "secret123")
    return controller
