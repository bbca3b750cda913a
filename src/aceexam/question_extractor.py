# identifies discrete exam questions in raw pdf text using the llm
from typing import Any, Callable, List, Optional
import json
import logging
import re

from pydantic import ValidationError

from .errors import InvalidInput
from .llm_service import GeminiClient, create_llm_client
from .models import QuestionItem
from .retry import with_retry

logger = logging.getLogger(__name__)

# structured output contract: array of {number, question}, both required strings
QUESTION_LIST_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "number": {"type": "STRING"},
            "question": {"type": "STRING"},
        },
        "required": ["number", "question"],
    },
}


# decode a json array from a model response, tolerating markdown code fences
def parse_json_array(response: Optional[str]) -> Optional[List[Any]]:
    if not response or not response.strip():
        return None
    response = response.strip()
    # remove markdown code blocks if present
    if response.startswith("```"):
        response = response.split("```")[1]
        if response.startswith("json"):
            response = response[4:]
        response = response.strip()

    try:
        data = json.loads(response)
    except json.JSONDecodeError:
        # try to extract the array from surrounding text
        json_match = re.search(r'\[.*\]', response, re.DOTALL)
        if not json_match:
            return None
        try:
            data = json.loads(json_match.group())
        except json.JSONDecodeError:
            return None

    return data if isinstance(data, list) else None


class QuestionExtractor:
    # initialize with the factory used to build a client per call
    def __init__(self, client_factory: Callable[[str], GeminiClient] = create_llm_client, retry=with_retry):
        self.client_factory = client_factory
        self.retry = retry

    def build_prompt(self, text: str) -> str:
        return (
            "Extract all academic exam questions from the following text.\n"
            "Keep the numbering or lettering used in the document for each question "
            "and keep the questions in the order they appear.\n"
            'Format as a JSON array of objects with keys "number" and "question".\n\n'
            f"Text:\n{text}"
        )

    # send the raw text to the model and return the questions in document order
    def extract(self, text: str, api_key: str) -> List[QuestionItem]:
        """Extract (number, question) pairs; returns [] when the response can't be parsed"""
        if not text or not text.strip():
            raise InvalidInput("Text content is required for extraction")

        def call() -> str:
            client = self.client_factory(api_key)
            try:
                return client.generate_text(
                    self.build_prompt(text),
                    temperature=0.1,
                    response_schema=QUESTION_LIST_SCHEMA,
                )
            finally:
                client.close()

        response = self.retry(call)

        data = parse_json_array(response)
        if data is None:
            logger.warning("Question extraction returned no parseable JSON array")
            return []

        questions = []
        for entry in data:
            try:
                item = QuestionItem.model_validate(entry)
            except ValidationError:
                logger.debug(f"Skipping malformed question entry: {entry!r}")
                continue
            number, question = item.number.strip(), item.question.strip()
            if not number or not question:
                continue
            questions.append(QuestionItem(number=number, question=question))

        logger.info(f"Extracted {len(questions)} question(s)")
        return questions
