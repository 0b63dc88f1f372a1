"""
Study controller: runs store and generator calls and feeds the results to the
navigation state machine.

Every public operation catches application errors, logs them and surfaces them
on the state (``error`` for screen banners, ``modal_error`` inside modals)
instead of raising. Operations do not overlap: a second call while one is in
flight is rejected with a banner.
"""
from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from lingoflip import navigation as nav
from lingoflip.deck import Deck
from lingoflip.errors import (
    AuthError, DeckLoadError, EmptyDefinitionListError, GenerationError, LingoFlipError,
    NotFoundError, OperationInProgressError, PersistenceError,
)
from lingoflip.importer import filter_new_definitions, load_definitions, split_definitions
from lingoflip.models import AuthSession, Flashcard, EDITABLE_FLASHCARD_FIELDS
from lingoflip.quiz import start_quiz
from lingoflip.store import SIGNED_IN, SIGNED_OUT, flashcard_row

logger = logging.getLogger(__name__)

MIN_CARDS_PER_REQUEST = 1
MAX_CARDS_PER_REQUEST = 20


@dataclass(frozen=True)
class CountMode:
    count: int


@dataclass(frozen=True)
class ListMode:
    definitions_text: str


GenerationMode = Union[CountMode, ListMode]


class StudyController:
    def __init__(self, store, generator, rng: Optional[random.Random] = None, max_workers: int = 8) -> None:
        self.store = store
        self.generator = generator
        self.rng = rng or random.Random()
        self.max_workers = max_workers
        self.state = nav.AppState(deck=Deck(rng=self.rng))
        self._unsubscribe = store.on_auth_state_change(self._on_auth_event)

    def close(self) -> None:
        """Detach from the store and release the HTTP clients it and the generator hold."""
        self._unsubscribe()
        for client in (self.generator, self.store):
            close = getattr(client, "close", None)
            if close is not None:
                close()

    # --- plumbing ---

    def dispatch(self, event) -> nav.AppState:
        self.state = nav.transition(self.state, event, rng=self.rng)
        return self.state

    def _on_auth_event(self, event: str, session: Optional[AuthSession]) -> None:
        if event == SIGNED_IN and session is not None:
            self.dispatch(nav.SignedIn(session.user))
        elif event == SIGNED_OUT:
            self.dispatch(nav.SignedOut())

    def _fail(self, error: Exception, in_modal: bool = False) -> None:
        logger.warning("%s: %s", type(error).__name__, error)
        self.dispatch(nav.ErrorRaised(str(error), in_modal=in_modal))

    @contextmanager
    def _operation(self, label: str):
        if self.state.busy:
            raise OperationInProgressError(self.state.busy)
        self.dispatch(nav.OperationStarted(label))
        try:
            yield
        finally:
            self.dispatch(nav.OperationFinished())

    def _require_user(self):
        if self.state.user is None:
            raise AuthError("You must be logged in.")
        return self.state.user

    def dismiss_error(self, in_modal: bool = False) -> None:
        self.dispatch(nav.ErrorDismissed(in_modal=in_modal))

    def dismiss_notice(self) -> None:
        self.dispatch(nav.NoticeRaised(None))

    def open_modal(self, modal: nav.Modal, target_id: Optional[str] = None) -> None:
        self.dispatch(nav.ModalOpened(modal, target_id))

    def close_modal(self) -> None:
        self.dispatch(nav.ModalClosed())

    # --- auth ---

    def resolve_session(self) -> bool:
        try:
            session = self.store.get_session()
        except LingoFlipError as e:
            logger.warning("Could not restore session: %s", e)
            session = None
        self.dispatch(nav.SessionResolved(session.user if session else None))
        if session:
            self.load_topics()
        return session is not None

    def sign_in(self, email: str, password: str) -> bool:
        try:
            with self._operation("Signing in"):
                self.store.sign_in(email.strip(), password)
        except LingoFlipError as e:
            self._fail(e)
            return False
        self.load_topics()
        return True

    def sign_up(self, email: str, password: str) -> bool:
        try:
            with self._operation("Creating account"):
                session = self.store.sign_up(email.strip(), password)
        except LingoFlipError as e:
            self._fail(e)
            return False
        if session is None:
            self.dispatch(nav.NoticeRaised(
                "Signup successful! Please check your email to confirm your account, then log in."
            ))
        else:
            self.load_topics()
        return True

    def sign_out(self) -> bool:
        try:
            with self._operation("Signing out"):
                self.store.sign_out()
        except LingoFlipError as e:
            self._fail(e)
            return False
        return True

    # --- topics and decks ---

    def load_topics(self) -> bool:
        try:
            user = self._require_user()
            topics = self.store.list_topics(user.id)
        except LingoFlipError as e:
            self._fail(PersistenceError(f"Failed to load topics: {e}"))
            return False
        self.dispatch(nav.TopicsLoaded(tuple(topics)))
        return True

    def _topic(self, topic_id: str):
        topic = self.state.find_topic(topic_id)
        if topic is None:
            topic = self.store.get_topic(topic_id)
        if topic is None:
            raise NotFoundError("Topic not found.")
        return topic

    def _open(self, event_type, topic_id: str) -> bool:
        try:
            topic = self._topic(topic_id)
        except LingoFlipError as e:
            self._fail(e)
            return False
        self.dispatch(event_type(topic))
        return self.load_deck(topic.id)

    def select_topic(self, topic_id: str) -> bool:
        return self._open(nav.TopicSelected, topic_id)

    def practice_topic(self, topic_id: str) -> bool:
        return self._open(nav.PracticeRequested, topic_id)

    def edit_topic_cards(self, topic_id: str) -> bool:
        return self._open(nav.EditCardsRequested, topic_id)

    def load_deck(self, topic_id: str) -> bool:
        if self.state.view not in nav.DECK_VIEWS:
            return False
        deck = Deck(topic_id=topic_id, rng=self.rng)
        try:
            with self._operation("Loading flashcards"):
                deck.load(self.store, topic_id)
        except DeckLoadError as e:
            self.dispatch(nav.DeckLoaded(deck))
            self._fail(e)
            return False
        except LingoFlipError as e:
            self._fail(e)
            return False
        self.dispatch(nav.DeckLoaded(deck))
        return True

    def back_to_dashboard(self) -> None:
        self.dispatch(nav.BackToDashboard())
        self.load_topics()

    # --- studying ---

    def shuffle_deck(self) -> bool:
        return self.state.deck.shuffle()

    def next_card(self) -> bool:
        return self.state.deck.advance()

    def previous_card(self) -> bool:
        return self.state.deck.retreat()

    def flip_card(self) -> None:
        self.state.deck.flip()

    # --- testing ---

    def start_test(self, selected_ids: Sequence[str]) -> bool:
        try:
            with self._operation("Generating test questions"):
                quiz = start_quiz(
                    self.generator, self.state.deck.select(selected_ids), list(selected_ids),
                    rng=self.rng, max_workers=self.max_workers,
                )
        except LingoFlipError as e:
            self._fail(e)
            return False
        self.dispatch(nav.QuizStarted(quiz))
        logger.info("Started test with %d questions", quiz.total)
        return True

    def answer_question(self, option_text: str) -> bool:
        """Record an answer for the current question; returns whether it was correct."""
        quiz = self.state.quiz
        item = quiz.current if quiz else None
        if item is None:
            return False
        option = next((o for o in item.options if o.text == option_text), None)
        is_correct = bool(option and option.is_correct)
        try:
            quiz.record_answer(item.id, option_text, is_correct)
        except LingoFlipError as e:
            self._fail(e)
            return False
        return is_correct

    def next_question(self) -> None:
        self.dispatch(nav.NextQuestion())

    def retry_test(self) -> None:
        self.dispatch(nav.RetryQuiz())

    def back_to_practice(self) -> None:
        self.dispatch(nav.BackToPractice())

    # --- generating and editing cards ---

    def create_or_augment_topic(self, name: str, existing_topic_id: Optional[str] = None) -> tuple[str, str]:
        """Return (topic_id, display name); creates the topic when no id is given.

        Raises DuplicateTopicError if the user already has a topic with that name.
        """
        if existing_topic_id:
            topic = self.state.find_topic(existing_topic_id)
            return existing_topic_id, topic.name if topic else name
        name = name.strip()
        if not name:
            raise GenerationError("Please enter a topic name.")
        user = self._require_user()
        topic = self.store.add_topic(user.id, name)
        logger.info("Created topic %r", topic.name)
        return topic.id, topic.name

    def _generate(self, topic_name: str, mode: GenerationMode, existing: list[str]):
        if isinstance(mode, CountMode):
            count = max(MIN_CARDS_PER_REQUEST, min(MAX_CARDS_PER_REQUEST, int(mode.count)))
            return self.generator.generate_flashcards(topic_name, count, existing_definitions=existing), count
        definitions = filter_new_definitions(mode.definitions_text, existing)
        if not definitions:
            raise EmptyDefinitionListError(
                "All definitions provided already exist in this topic or the list was empty after filtering."
            )
        cards = self.generator.generate_flashcards(
            topic_name, len(definitions), existing_definitions=existing, definitions=definitions,
        )
        return cards, len(definitions)

    def generate_and_save_cards(
        self,
        topic_name: str,
        mode: GenerationMode,
        existing_topic_id: Optional[str] = None,
    ) -> Optional[list[Flashcard]]:
        """Generate new flashcards for a topic and save them in one batch.

        Errors land in ``state.modal_error``. Returns the saved cards or None.
        """
        opened_from_dashboard = self.state.view == nav.View.DASHBOARD and self.state.selected_topic is None
        created = False
        try:
            with self._operation("Generating flashcards"):
                user = self._require_user()
                if isinstance(mode, ListMode) and not split_definitions(mode.definitions_text):
                    raise EmptyDefinitionListError(
                        "The provided definition list is empty or contains only whitespace."
                    )
                topic_id, name = self.create_or_augment_topic(topic_name, existing_topic_id)
                created = not existing_topic_id
                existing = self.store.list_definitions(topic_id)
                generated, requested = self._generate(name, mode, existing)
                if not generated:
                    raise GenerationError("AI did not generate any new cards. Please try again or adjust your input.")
                saved = self.store.add_flashcards([
                    flashcard_row(topic_id, user.id, c.word, c.definition, c.example_sentence)
                    for c in generated
                ])
        except LingoFlipError as e:
            self._fail(e, in_modal=True)
            if created:
                # the created topic stays, empty; list it so a retry can add to it
                self.load_topics()
            return None

        if len(saved) < requested:
            logger.warning("Generated %d of %d requested cards for %r", len(saved), requested, name)
            self.dispatch(nav.NoticeRaised(f"Generated {len(saved)} of {requested} requested cards."))
        self.close_modal()
        self.load_topics()
        selected = self.state.selected_topic
        if selected and selected.id == topic_id and self.state.view in (
            nav.View.PRACTICE_DECK_SELECTION, nav.View.EDIT_DECK_CARDS, nav.View.STUDY_DECK,
        ):
            self.load_deck(topic_id)
        elif opened_from_dashboard and not existing_topic_id and isinstance(mode, CountMode):
            self.select_topic(topic_id)
        return saved

    def import_definitions(self, file_path: str) -> Optional[str]:
        """Definitions from a file, joined for use with ListMode."""
        try:
            definitions = load_definitions(file_path)
        except (OSError, ValueError, ImportError) as e:
            self._fail(GenerationError(f"Could not read definitions from {file_path}: {e}"), in_modal=True)
            return None
        if not definitions:
            self._fail(EmptyDefinitionListError(f"No definitions found in {file_path}."), in_modal=True)
            return None
        return ", ".join(definitions)

    def delete_topic(self, topic_id: str) -> bool:
        try:
            with self._operation("Deleting topic"):
                self.store.delete_topic(topic_id)
        except LingoFlipError as e:
            self._fail(PersistenceError(f"Failed to delete topic: {e}"))
            return False
        finally:
            self.close_modal()
        self.dispatch(nav.TopicDeleted(topic_id))
        logger.info("Deleted topic %s", topic_id)
        return True

    def delete_flashcard(self, flashcard_id: str) -> bool:
        topic = self.state.selected_topic
        try:
            with self._operation("Deleting flashcard"):
                self.store.delete_flashcard(flashcard_id)
        except LingoFlipError as e:
            self._fail(PersistenceError(f"Failed to delete flashcard: {e}"), in_modal=True)
            return False
        self.close_modal()
        if topic:
            self.load_deck(topic.id)
        self.load_topics()
        return True

    def update_flashcard(self, flashcard_id: str, **fields: str) -> Optional[Flashcard]:
        try:
            unknown = set(fields) - set(EDITABLE_FLASHCARD_FIELDS)
            if unknown:
                raise PersistenceError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")
            updates = {k: v.strip() for k, v in fields.items() if v is not None}
            blank = [k for k, v in updates.items() if not v]
            if blank:
                raise PersistenceError(f"{blank[0].replace('_', ' ').capitalize()} cannot be empty.")
            with self._operation("Saving flashcard"):
                updated = self.store.update_flashcard(flashcard_id, updates)
        except LingoFlipError as e:
            self._fail(e, in_modal=True)
            return None
        self.close_modal()
        topic = self.state.selected_topic
        if topic:
            self.load_deck(topic.id)
        return updated
