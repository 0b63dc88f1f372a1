# tests/test_integration.py
"""End-to-end test of the core workflow."""
import random

from lingoflip.controller import CountMode, ListMode, StudyController
from lingoflip.generation import GeminiClient
from lingoflip.local_store import LocalStore
from lingoflip.navigation import View


def test_full_study_workflow(tmp_db, tmp_path):
    """Sign up, build a deck, study it, take a test and clean up, with placeholder generation."""
    store = LocalStore(tmp_db, session_path=tmp_path / "session.json")
    generator = GeminiClient(api_key="", rng=random.Random(1))
    ctl = StudyController(store, generator, rng=random.Random(1), max_workers=2)

    # Auth
    assert not ctl.resolve_session()
    assert ctl.sign_up("learner@example.com", "secret123")
    assert ctl.state.view == View.DASHBOARD

    # New topic from the dashboard opens the study deck
    saved = ctl.generate_and_save_cards("Travel", CountMode(3))
    assert len(saved) == 3
    topic_id = ctl.state.selected_topic.id
    assert ctl.state.view == View.STUDY_DECK

    # Augment with a definition list; duplicates are skipped
    existing = saved[0].definition
    ctl.generate_and_save_cards("Travel", ListMode(f"{existing}, to set off on a trip"), existing_topic_id=topic_id)
    assert len(ctl.state.deck) == 4
    assert ctl.state.selected_topic.flashcard_count == 4

    # Study
    ctl.flip_card()
    ctl.next_card()
    assert ctl.state.deck.position == "Card 2 of 4"

    # Test every card, answering each correctly
    ctl.practice_topic(topic_id)
    assert ctl.start_test([c.id for c in ctl.state.deck.cards])
    while ctl.state.view == View.TEST_ACTIVE:
        ctl.answer_question(ctl.state.quiz.current.correct_option.text)
        ctl.next_question()
    assert ctl.state.view == View.TEST_SUMMARY
    assert ctl.state.quiz.percentage() == 100

    # Restart keeps the session
    other = StudyController(LocalStore(tmp_db, session_path=tmp_path / "session.json"), generator)
    assert other.resolve_session()
    assert [t.name for t in other.state.topics] == ["Travel"]

    # Clean up
    ctl.back_to_dashboard()
    assert ctl.delete_topic(topic_id)
    assert ctl.state.topics == []
    ctl.sign_out()
    assert ctl.state.view == View.AUTH
