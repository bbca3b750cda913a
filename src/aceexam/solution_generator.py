# generates exam-ready solutions, diagram prompts and reference links
from typing import Callable, Dict, List, Optional
from urllib.parse import quote_plus
import json
import logging

from pydantic import ValidationError

from .errors import InvalidInput
from .llm_service import GeminiClient, create_llm_client
from .models import AcademicContext, QuestionItem
from .question_extractor import parse_json_array
from .retry import with_retry

logger = logging.getLogger(__name__)

SOLUTION_LIST_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "number": {"type": "STRING"},
            "question": {"type": "STRING"},
            "answer": {"type": "STRING"},
            "diagramPrompt": {"type": "STRING"},
            "referenceDocUrl": {"type": "STRING"},
            "referenceVideoUrl": {"type": "STRING"},
        },
        "required": ["number", "question", "answer", "referenceDocUrl", "referenceVideoUrl"],
    },
}

# live web lookup so reference links are grounded rather than recalled
GROUNDING_TOOLS = [{"google_search": {}}]

FALLBACK_ANSWER = (
    "A detailed solution could not be generated for this question. "
    "Use the reference links below to review the topic."
)


def search_doc_url(query: str) -> str:
    return f"https://www.google.com/search?q={quote_plus(query)}"


def search_video_url(query: str) -> str:
    return f"https://www.youtube.com/results?search_query={quote_plus(query)}"


def _is_web_url(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower().startswith(("http://", "https://"))


class SolutionGenerator:
    # initialize with the factory used to build a client per call
    def __init__(self, client_factory: Callable[[str], GeminiClient] = create_llm_client, retry=with_retry):
        self.client_factory = client_factory
        self.retry = retry

    def build_prompt(self, questions: List[QuestionItem], context: AcademicContext) -> str:
        question_json = json.dumps(
            [{"number": q.number, "question": q.question} for q in questions], indent=2
        )
        return f"""Act as an expert Academic Solver for the subject: {context.subject}.
Academic Context: {context.field} -> {context.sub_field}

TASK: Provide detailed, accurate, and exam-ready solutions for these questions.
- For calculation or other quantitative problems, show every derivation step ("Step 1:", "Step 2:", ...) and end with "Final Answer:".
- For theoretical questions, use structured exposition: short headings ending with ":" followed by bullet points.
- Only propose a "diagramPrompt" when a technical drawing would genuinely aid understanding; otherwise omit it.
- Use web search to find a "referenceDocUrl" (an educational article) and a "referenceVideoUrl" (a YouTube tutorial) that exist today for each question.
- Keep the "number" and "question" exactly as given.

Questions:
{question_json}"""

    # solve every question, never dropping one
    def solve(self, questions: List[QuestionItem], context: AcademicContext, api_key: str) -> List[QuestionItem]:
        """Return the questions enriched with answers and references, in input order"""
        if not questions:
            raise InvalidInput("No questions provided to solver")

        def call() -> str:
            client = self.client_factory(api_key)
            try:
                return client.generate_text(
                    self.build_prompt(questions, context),
                    temperature=0.2,
                    response_schema=SOLUTION_LIST_SCHEMA,
                    tools=GROUNDING_TOOLS,
                )
            finally:
                client.close()

        response = self.retry(call)

        data = parse_json_array(response)
        if data is None:
            logger.warning("Solution response could not be parsed, using fallback answers for all questions")
            data = []

        return self._merge(questions, data, context)

    # match solved entries back onto the input questions
    def _merge(self, questions: List[QuestionItem], data: list, context: AcademicContext) -> List[QuestionItem]:
        entries: List[Optional[QuestionItem]] = []
        for entry in data:
            try:
                entries.append(QuestionItem.model_validate(entry))
            except ValidationError:
                entries.append(None)

        # reply positions per number; numbering may restart between exam sections
        by_number: Dict[str, List[int]] = {}
        for position, item in enumerate(entries):
            if item is not None:
                by_number.setdefault(item.number.strip(), []).append(position)

        claimed = set()
        matches: List[Optional[int]] = [None] * len(questions)
        # exact (number, question) pairs first, then the remaining entries of each number in order
        for exact in (True, False):
            for index, original in enumerate(questions):
                if matches[index] is not None:
                    continue
                for position in by_number.get(original.number.strip(), []):
                    if position in claimed:
                        continue
                    if exact and entries[position].question.strip() != original.question.strip():
                        continue
                    matches[index] = position
                    claimed.add(position)
                    break

        # position only counts when the reply mirrors the input one to one
        if len(entries) == len(questions):
            for index, match in enumerate(matches):
                if match is None and entries[index] is not None and index not in claimed:
                    matches[index] = index
                    claimed.add(index)

        results = []
        degraded = 0
        for original, match in zip(questions, matches):
            solved = entries[match] if match is not None else None
            if solved is None or not (solved.answer or "").strip():
                degraded += 1
            results.append(self._enrich(original, solved, context))

        if degraded:
            logger.warning(f"  ! {degraded} question(s) received a fallback answer")
        logger.info(f"Solved {len(results) - degraded}/{len(results)} question(s)")
        return results

    def _enrich(self, original: QuestionItem, solved: Optional[QuestionItem], context: AcademicContext) -> QuestionItem:
        query = f"{context.subject} {original.question}"[:200]
        answer = (solved.answer or "").strip() if solved else ""
        doc_url = solved.reference_doc_url if solved else None
        video_url = solved.reference_video_url if solved else None
        diagram_prompt = (solved.diagram_prompt or "").strip() if solved else ""

        update = {
            "answer": original.answer or answer or FALLBACK_ANSWER,
            "reference_doc_url": original.reference_doc_url
            or (doc_url.strip() if _is_web_url(doc_url) else search_doc_url(query)),
            "reference_video_url": original.reference_video_url
            or (video_url.strip() if _is_web_url(video_url) else search_video_url(query)),
        }
        if not original.diagram_prompt and diagram_prompt:
            update["diagram_prompt"] = diagram_prompt
        return original.model_copy(update=update)
