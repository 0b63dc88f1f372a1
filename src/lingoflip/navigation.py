"""
Navigation state machine.

AppState holds everything the interactive surface renders from. transition()
maps (state, event) to a new AppState without mutating its input or doing
I/O; events that are not accepted by the current view raise NavigationError.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from lingoflip.deck import Deck
from lingoflip.errors import NavigationError
from lingoflip.models import Topic, User
from lingoflip.quiz import Quiz


class View(str, Enum):
    AUTH = "auth"
    DASHBOARD = "dashboard"
    PRACTICE_DECK_SELECTION = "practice_deck_selection"
    EDIT_DECK_CARDS = "edit_deck_cards"
    STUDY_DECK = "study_deck"
    TEST_ACTIVE = "test_active"
    TEST_SUMMARY = "test_summary"


class Modal(str, Enum):
    GENERATE_DECK = "generate_deck"
    CONFIRM_DELETE_TOPIC = "confirm_delete_topic"
    EDIT_FLASHCARD = "edit_flashcard"
    CONFIRM_DELETE_FLASHCARD = "confirm_delete_flashcard"


DECK_VIEWS = frozenset({
    View.PRACTICE_DECK_SELECTION, View.EDIT_DECK_CARDS, View.STUDY_DECK,
    View.TEST_ACTIVE, View.TEST_SUMMARY,
})
SIGNED_IN_VIEWS = DECK_VIEWS | {View.DASHBOARD}
ALL_VIEWS = frozenset(View)


@dataclass
class AppState:
    view: View = View.AUTH
    user: Optional[User] = None
    topics: list[Topic] = field(default_factory=list)
    selected_topic: Optional[Topic] = None
    deck: Deck = field(default_factory=Deck)
    quiz: Optional[Quiz] = None
    modal: Optional[Modal] = None
    modal_target: Optional[str] = None
    error: Optional[str] = None
    modal_error: Optional[str] = None
    notice: Optional[str] = None
    busy: Optional[str] = None

    def find_topic(self, topic_id: str) -> Optional[Topic]:
        for topic in self.topics:
            if topic.id == topic_id:
                return topic
        if self.selected_topic and self.selected_topic.id == topic_id:
            return self.selected_topic
        return None


# --- Events ---

@dataclass(frozen=True)
class SessionResolved:
    user: Optional[User]


@dataclass(frozen=True)
class SignedIn:
    user: User


@dataclass(frozen=True)
class SignedOut:
    pass


@dataclass(frozen=True)
class TopicsLoaded:
    topics: tuple


@dataclass(frozen=True)
class TopicSelected:
    topic: Topic


@dataclass(frozen=True)
class PracticeRequested:
    topic: Topic


@dataclass(frozen=True)
class EditCardsRequested:
    topic: Topic


@dataclass(frozen=True)
class DeckLoaded:
    deck: Deck


@dataclass(frozen=True)
class QuizStarted:
    quiz: Quiz


@dataclass(frozen=True)
class NextQuestion:
    pass


@dataclass(frozen=True)
class RetryQuiz:
    pass


@dataclass(frozen=True)
class BackToPractice:
    pass


@dataclass(frozen=True)
class BackToDashboard:
    pass


@dataclass(frozen=True)
class TopicDeleted:
    topic_id: str


@dataclass(frozen=True)
class ErrorRaised:
    message: str
    in_modal: bool = False


@dataclass(frozen=True)
class ErrorDismissed:
    in_modal: bool = False


@dataclass(frozen=True)
class NoticeRaised:
    message: Optional[str]


@dataclass(frozen=True)
class ModalOpened:
    modal: Modal
    target_id: Optional[str] = None


@dataclass(frozen=True)
class ModalClosed:
    pass


@dataclass(frozen=True)
class OperationStarted:
    label: str


@dataclass(frozen=True)
class OperationFinished:
    pass


ALLOWED_FROM = {
    SessionResolved: ALL_VIEWS,
    SignedIn: ALL_VIEWS,
    SignedOut: ALL_VIEWS,
    TopicsLoaded: SIGNED_IN_VIEWS,
    TopicSelected: {View.DASHBOARD},
    PracticeRequested: {View.DASHBOARD, View.STUDY_DECK},
    EditCardsRequested: {View.DASHBOARD, View.STUDY_DECK},
    DeckLoaded: DECK_VIEWS,
    QuizStarted: {View.PRACTICE_DECK_SELECTION},
    NextQuestion: {View.TEST_ACTIVE},
    RetryQuiz: {View.TEST_SUMMARY},
    BackToPractice: {View.TEST_ACTIVE, View.TEST_SUMMARY},
    BackToDashboard: SIGNED_IN_VIEWS,
    TopicDeleted: SIGNED_IN_VIEWS,
    ErrorRaised: ALL_VIEWS,
    ErrorDismissed: ALL_VIEWS,
    NoticeRaised: ALL_VIEWS,
    ModalOpened: SIGNED_IN_VIEWS,
    ModalClosed: ALL_VIEWS,
    OperationStarted: ALL_VIEWS,
    OperationFinished: ALL_VIEWS,
}


def _signed_out() -> AppState:
    return AppState(view=View.AUTH)


def _open_topic(state: AppState, view: View, topic: Topic) -> AppState:
    same_topic = state.selected_topic is not None and state.selected_topic.id == topic.id
    deck = state.deck if same_topic else Deck(topic_id=topic.id)
    return replace(state, view=view, selected_topic=topic, deck=deck, quiz=None, error=None)


def transition(state: AppState, event, rng: Optional[random.Random] = None) -> AppState:
    allowed = ALLOWED_FROM.get(type(event))
    if allowed is None:
        raise NavigationError(f"Unknown event {event!r}")
    if state.view not in allowed:
        raise NavigationError(f"{type(event).__name__} is not allowed from {state.view.value}")
    if isinstance(event, (NextQuestion, RetryQuiz)) and state.quiz is None:
        raise NavigationError("There is no quiz in progress")

    if isinstance(event, SessionResolved):
        if event.user is None:
            return _signed_out()
        return replace(state, view=View.DASHBOARD, user=event.user)
    if isinstance(event, SignedIn):
        if state.user and state.user.id == event.user.id and state.view != View.AUTH:
            return replace(state, user=event.user)
        return AppState(view=View.DASHBOARD, user=event.user)
    if isinstance(event, SignedOut):
        return _signed_out()
    if isinstance(event, TopicsLoaded):
        topics = list(event.topics)
        selected = state.selected_topic
        if selected is not None:
            selected = next((t for t in topics if t.id == selected.id), selected)
        return replace(state, topics=topics, selected_topic=selected)
    if isinstance(event, TopicSelected):
        return _open_topic(state, View.STUDY_DECK, event.topic)
    if isinstance(event, PracticeRequested):
        return _open_topic(state, View.PRACTICE_DECK_SELECTION, event.topic)
    if isinstance(event, EditCardsRequested):
        return _open_topic(state, View.EDIT_DECK_CARDS, event.topic)
    if isinstance(event, DeckLoaded):
        return replace(state, deck=event.deck)
    if isinstance(event, QuizStarted):
        return replace(state, view=View.TEST_ACTIVE, quiz=event.quiz, error=None)
    if isinstance(event, NextQuestion):
        quiz = state.quiz.clone()
        if quiz.advance():
            return replace(state, quiz=quiz)
        return replace(state, view=View.TEST_SUMMARY, quiz=quiz)
    if isinstance(event, RetryQuiz):
        quiz = state.quiz.clone()
        quiz.retry(rng)
        return replace(state, view=View.TEST_ACTIVE, quiz=quiz)
    if isinstance(event, BackToPractice):
        return replace(state, view=View.PRACTICE_DECK_SELECTION, quiz=None)
    if isinstance(event, BackToDashboard):
        return replace(
            state, view=View.DASHBOARD, selected_topic=None, deck=Deck(), quiz=None,
            error=None, modal_error=None,
        )
    if isinstance(event, TopicDeleted):
        topics = [t for t in state.topics if t.id != event.topic_id]
        if state.selected_topic and state.selected_topic.id == event.topic_id:
            return replace(
                state, view=View.DASHBOARD, topics=topics, selected_topic=None, deck=Deck(), quiz=None,
            )
        return replace(state, topics=topics)
    if isinstance(event, ErrorRaised):
        if event.in_modal:
            return replace(state, modal_error=event.message)
        return replace(state, error=event.message)
    if isinstance(event, ErrorDismissed):
        if event.in_modal:
            return replace(state, modal_error=None)
        return replace(state, error=None)
    if isinstance(event, NoticeRaised):
        return replace(state, notice=event.message)
    if isinstance(event, ModalOpened):
        return replace(state, modal=event.modal, modal_target=event.target_id, modal_error=None)
    if isinstance(event, ModalClosed):
        return replace(state, modal=None, modal_target=None, modal_error=None)
    if isinstance(event, OperationStarted):
        return replace(state, busy=event.label)
    if isinstance(event, OperationFinished):
        return replace(state, busy=None)
    raise NavigationError(f"Unhandled event {event!r}")
