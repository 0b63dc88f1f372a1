"""Study deck: ordered flashcards with a cursor and a flip state."""
import logging
import random
from typing import Iterable, Optional

from lingoflip.errors import DeckLoadError, LingoFlipError
from lingoflip.models import Flashcard

logger = logging.getLogger(__name__)


class Deck:
    def __init__(self, cards: Optional[Iterable[Flashcard]] = None, topic_id: Optional[str] = None,
                 rng: Optional[random.Random] = None) -> None:
        self.cards: list[Flashcard] = list(cards or [])
        self.topic_id = topic_id
        self.cursor = 0
        self.flipped = False
        self.rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self.cards)

    def __repr__(self) -> str:
        return f"Deck(topic_id={self.topic_id!r}, size={len(self.cards)}, cursor={self.cursor})"

    @property
    def is_empty(self) -> bool:
        return not self.cards

    @property
    def current(self) -> Optional[Flashcard]:
        return self.cards[self.cursor] if self.cards else None

    @property
    def can_advance(self) -> bool:
        return self.cursor < len(self.cards) - 1

    @property
    def can_retreat(self) -> bool:
        return self.cursor > 0

    @property
    def position(self) -> str:
        return f"Card {self.cursor + 1} of {len(self.cards)}" if self.cards else "No cards"

    def _reset_view(self) -> None:
        self.cursor = 0
        self.flipped = False

    def load(self, store, topic_id: str) -> None:
        """Replace the cards with the topic's flashcards, oldest first."""
        self.topic_id = topic_id
        self.cards = []
        self._reset_view()
        try:
            self.cards = store.list_flashcards(topic_id)
        except LingoFlipError as e:
            logger.warning("Loading flashcards for topic %s failed: %s", topic_id, e)
            raise DeckLoadError(f"Failed to load flashcards for the topic: {e}") from e
        logger.debug("Loaded %d flashcards for topic %s", len(self.cards), topic_id)

    def shuffle(self) -> bool:
        """Uniformly permute the cards in place. Returns False if there is nothing to shuffle."""
        if len(self.cards) < 2:
            return False
        self.rng.shuffle(self.cards)
        self._reset_view()
        return True

    def advance(self) -> bool:
        if not self.can_advance:
            return False
        self.cursor += 1
        self.flipped = False
        return True

    def retreat(self) -> bool:
        if not self.can_retreat:
            return False
        self.cursor -= 1
        self.flipped = False
        return True

    def flip(self) -> None:
        if self.cards:
            self.flipped = not self.flipped

    def select(self, flashcard_ids: Iterable[str]) -> list[Flashcard]:
        """Cards whose id is in ``flashcard_ids``, in deck order."""
        wanted = set(flashcard_ids)
        return [c for c in self.cards if c.id in wanted]
