"""
Content generation client for the Gemini generateContent REST API.

generate_flashcards() raises GenerationError when nothing usable comes back.
generate_mcq() never raises: failures degrade to an error placeholder item
that quiz validation filters out.

Without an API key both calls return placeholder data.
"""
from __future__ import annotations

import logging
import random
from typing import Optional, Sequence

import httpx

from lingoflip.errors import GenerationError
from lingoflip.models import Flashcard, GeneratedCard, MCQItem, MCQOption
from lingoflip.parsing import FLASHCARD_PARSERS, MCQ_PARSERS, extract_array, parse_model_json
from lingoflip.placeholders import error_mcq, mcq_id, placeholder_flashcards, placeholder_mcq

logger = logging.getLogger(__name__)

DISTRACTOR_COUNT = 3

FLASHCARD_PROMPT = """Generate {count} English vocabulary flashcards for a learner.
For each flashcard, provide the word, its definition, and an example sentence.
The words should be related to the topic: "{topic}".
Return the response as a JSON array, where each object has keys: "word", "definition", "exampleSentence".
Ensure each "word" is concise, ideally one or two words.
Ensure "definition" is clear and suitable for an English learner.
Ensure "exampleSentence" effectively uses the word.
Example of a single item in the array:
{{"word": "Ephemeral", "definition": "Lasting for a very short time.", "exampleSentence": "The beauty of the cherry blossoms is ephemeral, lasting only a week."}}"""

EXISTING_HINT = """
The topic already contains cards with these definitions; do not repeat them:
{existing}"""

DEFINITIONS_HINT = """
Create exactly one flashcard for each of the following definitions, in order, and keep each definition as given:
{definitions}"""

MCQ_PROMPT = """Given the flashcard:
Word: "{word}"
Definition: "{definition}"
Example Sentence: "{example}"

Generate a fill-in-the-blank multiple-choice question testing the word "{word}" in the context of its example sentence.
Provide:
1. "questionSentence": the example sentence with ALL instances of "{word}" (case-insensitive) replaced by "______".
2. "correctAnswer": the original word "{word}".
3. "distractors": an array of 3 plausible but incorrect words that fit the blank grammatically but not semantically. They must differ from the correct answer and from each other.
4. "explanation": 1-2 sentences on why "{word}" is correct, referencing its definition or clues in the sentence.

Return a single JSON object with keys "questionSentence", "correctAnswer", "distractors" and "explanation"."""


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


class GeminiClient:
    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        flashcard_temperature: float = 0.7,
        mcq_temperature: float = 0.6,
        http_client: Optional[httpx.Client] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.flashcard_temperature = flashcard_temperature
        self.mcq_temperature = mcq_temperature
        self.rng = rng or random.Random()
        self._client = http_client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
        if not api_key:
            logger.warning("No Gemini API key configured; generation will use placeholder data.")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def close(self) -> None:
        self._client.close()

    def _generate_text(self, prompt: str, temperature: float) -> str:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json", "temperature": temperature},
        }
        try:
            response = self._client.post(
                f"/models/{self.model}:generateContent",
                params={"key": self.api_key},
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise GenerationError(f"Generation service returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationError(f"Generation service unavailable: {e}") from e
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            parts = []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text.strip():
            raise GenerationError("The generation service returned an empty response.")
        return text

    def generate_flashcards(
        self,
        topic: str,
        count: int,
        existing_definitions: Sequence[str] = (),
        definitions: Optional[Sequence[str]] = None,
    ) -> list[GeneratedCard]:
        if definitions:
            count = len(definitions)
        if not self.enabled:
            return placeholder_flashcards(topic, count, list(definitions) if definitions else None)

        prompt = FLASHCARD_PROMPT.format(count=count, topic=topic)
        if existing_definitions:
            prompt += EXISTING_HINT.format(existing=_bullets(existing_definitions))
        if definitions:
            prompt += DEFINITIONS_HINT.format(definitions=_bullets(definitions))

        text = self._generate_text(prompt, self.flashcard_temperature)
        result = parse_model_json(text, FLASHCARD_PARSERS)
        if not result.ok:
            raise GenerationError("Failed to parse flashcards data from the generation response.")
        raw = extract_array(result.value)
        if raw is None:
            raise GenerationError("The generation response did not contain a list of flashcards.")

        cards = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            word = str(item.get("word") or "").strip()
            definition = str(item.get("definition") or "").strip()
            example = str(item.get("exampleSentence") or item.get("example_sentence") or "").strip()
            if word and definition and example:
                cards.append(GeneratedCard(word, definition, example))
        if not cards:
            raise GenerationError(
                "No valid flashcards were generated. Try a different topic or adjust your input."
            )
        logger.info("Generated %d flashcards for topic %r", len(cards), topic)
        return cards

    def generate_mcq(self, flashcard: Flashcard) -> MCQItem:
        if not self.enabled:
            return placeholder_mcq(flashcard, self.rng)
        try:
            return self._build_mcq(flashcard)
        except GenerationError as e:
            logger.warning("MCQ generation failed for %r: %s", flashcard.word, e)
            return error_mcq(flashcard, str(e), self.rng)

    def _build_mcq(self, flashcard: Flashcard) -> MCQItem:
        prompt = MCQ_PROMPT.format(
            word=flashcard.word, definition=flashcard.definition, example=flashcard.example_sentence,
        )
        text = self._generate_text(prompt, self.mcq_temperature)
        result = parse_model_json(text, MCQ_PARSERS)
        data = result.value if result.ok else None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            data = data[0]
        if not isinstance(data, dict):
            raise GenerationError(f'Failed to parse valid MCQ data for word "{flashcard.word}".')

        question = str(data.get("questionSentence") or "").strip()
        answer = str(data.get("correctAnswer") or "").strip()
        distractors = []
        seen = {answer.lower()}
        for d in data.get("distractors") or []:
            d = str(d).strip()
            if d and d.lower() not in seen:
                seen.add(d.lower())
                distractors.append(d)
        if not question or not answer or len(distractors) < DISTRACTOR_COUNT:
            raise GenerationError(f'Failed to parse valid MCQ data for word "{flashcard.word}".')

        options = [MCQOption(answer, True)] + [MCQOption(d, False) for d in distractors[:DISTRACTOR_COUNT]]
        self.rng.shuffle(options)
        return MCQItem(
            id=mcq_id(flashcard.id),
            flashcard_id=flashcard.id,
            question=question,
            options=options,
            explanation=str(data.get("explanation") or "").strip(),
            original_word=flashcard.word,
        )
