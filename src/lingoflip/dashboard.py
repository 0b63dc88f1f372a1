"""Topic summary statistics and quiz score labels."""
from lingoflip.models import Topic


def get_score_label(percentage: float) -> str:
    if percentage >= 90:
        return "EXCELLENT"
    elif percentage >= 70:
        return "GOOD"
    elif percentage >= 50:
        return "KEEP PRACTICING"
    return "NEEDS REVIEW"


def get_score_color(percentage: float) -> str:
    if percentage >= 90:
        return "green"
    elif percentage >= 70:
        return "yellow"
    elif percentage >= 50:
        return "dark_orange"
    return "red"


def summarize_topics(topics: list[Topic]) -> dict:
    largest = max(topics, key=lambda t: t.flashcard_count, default=None)
    return {
        "topic_count": len(topics),
        "flashcard_count": sum(t.flashcard_count for t in topics),
        "largest_topic": largest.name if largest and largest.flashcard_count else None,
    }
