"""Tests for the Gemini client and placeholder content."""
import json
import random

import httpx
import pytest

from lingoflip.errors import GenerationError
from lingoflip.generation import GeminiClient
from lingoflip.models import Flashcard
from lingoflip.placeholders import ERROR_MARKER, MISSING_KEY_MARKER, blank_out
from lingoflip.quiz import is_valid_mcq

CARD = Flashcard(id="f1", topic_id="t1", user_id="u1", word="Ephemeral",
                 definition="Lasting for a very short time.",
                 example_sentence="The ephemeral beauty of blossoms fades. Ephemeral joys pass.")


def _reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _client(handler, api_key="test-key"):
    http = httpx.Client(base_url="https://gemini.test/v1beta", transport=httpx.MockTransport(handler))
    return GeminiClient(api_key=api_key, http_client=http, rng=random.Random(3))


def test_flashcards_request_shape():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["key"] = request.url.params["key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply(json.dumps([
            {"word": "Passport", "definition": "A travel document.", "exampleSentence": "Bring your passport."},
        ])))

    cards = _client(handler).generate_flashcards("Travel", 1, existing_definitions=["Bags for travel."])
    assert [c.word for c in cards] == ["Passport"]
    assert seen["path"] == "/v1beta/models/gemini-2.5-flash:generateContent"
    assert seen["key"] == "test-key"
    prompt = seen["body"]["contents"][0]["parts"][0]["text"]
    assert '"Travel"' in prompt
    assert "Bags for travel." in prompt
    assert seen["body"]["generationConfig"]["temperature"] == 0.7


def test_flashcards_definitions_in_prompt():
    seen = {}

    def handler(request):
        seen["prompt"] = json.loads(request.content)["contents"][0]["parts"][0]["text"]
        return httpx.Response(200, json=_reply(
            '{"flashcards": [{"word": "Hike", "definition": "A long walk.", "exampleSentence": "We hike."}]}'
        ))

    cards = _client(handler).generate_flashcards("Outdoors", 5, definitions=["A long walk."])
    assert cards[0].definition == "A long walk."
    assert "Generate 1 English vocabulary flashcards" in seen["prompt"]
    assert "- A long walk." in seen["prompt"]


def test_flashcards_drop_incomplete_items():
    text = json.dumps([
        {"word": "Tent", "definition": "A shelter.", "exampleSentence": "Pitch the tent."},
        {"word": "", "definition": "Missing word.", "exampleSentence": "x"},
        "not an object",
    ])
    cards = _client(lambda r: httpx.Response(200, json=_reply(text))).generate_flashcards("Camping", 3)
    assert [c.word for c in cards] == ["Tent"]


def test_flashcards_nothing_usable_raises():
    client = _client(lambda r: httpx.Response(200, json=_reply("[]")))
    with pytest.raises(GenerationError, match="No valid flashcards"):
        client.generate_flashcards("Camping", 3)


def test_flashcards_http_error_raises():
    client = _client(lambda r: httpx.Response(503, json={"error": "overloaded"}))
    with pytest.raises(GenerationError, match="HTTP 503"):
        client.generate_flashcards("Camping", 3)


def test_empty_candidates_raise():
    client = _client(lambda r: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(GenerationError, match="empty response"):
        client.generate_flashcards("Camping", 3)


def test_flashcards_without_key_are_placeholders():
    def handler(request):
        raise AssertionError("no request expected")

    cards = _client(handler, api_key="").generate_flashcards("Travel", 3)
    assert len(cards) == 3
    assert all("Placeholder word" in c.word for c in cards)


def test_mcq_valid_item():
    text = json.dumps({
        "questionSentence": "The ______ beauty of blossoms fades.",
        "correctAnswer": "Ephemeral",
        "distractors": ["Eternal", "Massive", "Ancient"],
        "explanation": "It lasts a short time.",
    })
    item = _client(lambda r: httpx.Response(200, json=_reply(text))).generate_mcq(CARD)
    assert is_valid_mcq(item)
    assert item.correct_option.text == "Ephemeral"
    assert sorted(o.text for o in item.options) == ["Ancient", "Ephemeral", "Eternal", "Massive"]
    assert item.flashcard_id == "f1"
    assert item.original_word == "Ephemeral"


def test_mcq_duplicate_distractors_become_error_item():
    text = json.dumps({
        "questionSentence": "The ______ beauty.",
        "correctAnswer": "Ephemeral",
        "distractors": ["ephemeral", "Eternal", "Eternal"],
        "explanation": "",
    })
    item = _client(lambda r: httpx.Response(200, json=_reply(text))).generate_mcq(CARD)
    assert ERROR_MARKER in item.question
    assert not is_valid_mcq(item)


def test_mcq_network_failure_becomes_error_item():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    item = _client(handler).generate_mcq(CARD)
    assert ERROR_MARKER in item.question
    assert item.explanation.startswith("Could not generate explanation")


def test_mcq_without_key_is_practice_placeholder():
    item = _client(lambda r: httpx.Response(500), api_key="").generate_mcq(CARD)
    assert MISSING_KEY_MARKER in item.question
    assert "Ephemeral" not in item.question.replace(MISSING_KEY_MARKER, "")
    assert is_valid_mcq(item)


def test_blank_out_replaces_all_occurrences_case_insensitive():
    assert blank_out("Ephemeral joys are ephemeral.", "ephemeral") == "______ joys are ______."
    assert blank_out("Catalog the cat.", "cat") == "Catalog the ______."
