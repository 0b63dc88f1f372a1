"""Data classes for the flashcard domain model."""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class User:
    id: str
    email: str

    @property
    def display_name(self) -> str:
        return self.email.split("@")[0] if self.email else "User"


@dataclass
class AuthSession:
    access_token: str
    user: User
    refresh_token: str = ""
    expires_at: Optional[int] = None  # epoch seconds

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user": {"id": self.user.id, "email": self.user.email},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuthSession":
        user = data.get("user") or {}
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            expires_at=data.get("expires_at"),
            user=User(id=str(user["id"]), email=user.get("email") or ""),
        )


@dataclass
class Topic:
    id: str
    user_id: str
    name: str
    created_at: str = ""
    flashcard_count: int = 0


@dataclass
class Flashcard:
    id: str
    topic_id: str
    user_id: str
    word: str
    definition: str
    example_sentence: str
    created_at: str = ""
    updated_at: str = ""


@dataclass
class GeneratedCard:
    """A flashcard returned by the generator that has not been saved yet."""
    word: str
    definition: str
    example_sentence: str


@dataclass
class MCQOption:
    text: str
    is_correct: bool = False


@dataclass
class MCQItem:
    id: str
    flashcard_id: str
    question: str
    options: list[MCQOption] = field(default_factory=list)
    explanation: str = ""
    original_word: str = ""

    @property
    def correct_option(self) -> Optional[MCQOption]:
        correct = [o for o in self.options if o.is_correct]
        return correct[0] if len(correct) == 1 else None


@dataclass
class UserAnswer:
    question_id: str
    selected_option_text: str
    is_correct: bool


# Fields of a flashcard a user may edit after generation.
EDITABLE_FLASHCARD_FIELDS = ("word", "definition", "example_sentence")
