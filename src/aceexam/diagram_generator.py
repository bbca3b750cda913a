# renders diagram prompts into inline images with the gemini image model
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional
import logging

from . import config
from .llm_service import GeminiClient, create_llm_client, response_inline_data
from .models import QuestionItem
from .retry import with_retry

logger = logging.getLogger(__name__)


class DiagramGenerator:
    # initialize with the factory used to build a client per call
    def __init__(
        self,
        client_factory: Callable[[str], GeminiClient] = create_llm_client,
        retry=with_retry,
        max_workers: Optional[int] = None,
    ):
        self.client_factory = client_factory
        self.retry = retry
        self.max_workers = max_workers or config.DIAGRAM_WORKERS

    def build_prompt(self, description: str) -> str:
        return (
            f"High-quality academic diagram: {description}. "
            "Clean white background, minimalist professional technical style, clearly labelled."
        )

    # render one diagram; any failure means "no diagram"
    def render(self, description: Optional[str], api_key: str) -> Optional[str]:
        """Return a data:<mime>;base64 URI, or None when no image could be produced"""
        if not description or not description.strip():
            return None

        def call():
            client = self.client_factory(api_key)
            try:
                return client.generate_content(
                    config.IMAGE_MODEL,
                    [{"text": self.build_prompt(description.strip())}],
                    generation_config={
                        "responseModalities": ["IMAGE"],
                        "imageConfig": {"aspectRatio": "4:3"},
                    },
                )
            finally:
                client.close()

        try:
            result = self.retry(call)
        except Exception as e:
            logger.warning(f"Diagram generation skipped: {str(e)}")
            return None

        inline = response_inline_data(result or {})
        if inline is None:
            logger.warning("Diagram generation returned no image")
            return None
        return f"data:{inline['mime_type']};base64,{inline['data']}"

    # render diagrams for every question that asks for one, concurrently
    def render_all(self, questions: List[QuestionItem], api_key: str) -> List[QuestionItem]:
        """Return a new list where items with a diagram prompt may carry diagram_data_url"""
        results = list(questions)
        pending = [
            (index, item) for index, item in enumerate(questions)
            if item.diagram_prompt and item.diagram_prompt.strip() and not item.diagram_data_url
        ]
        if not pending:
            return results

        logger.info(f"Rendering {len(pending)} diagram(s)")
        rendered = 0
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(pending))) as pool:
            futures = {pool.submit(self.render, item.diagram_prompt, api_key): index for index, item in pending}
            for fut in as_completed(futures):
                index = futures[fut]
                try:
                    data_url = fut.result()
                except Exception as e:
                    logger.warning(f"Diagram for question {questions[index].number} skipped: {str(e)}")
                    continue
                if data_url:
                    results[index] = questions[index].model_copy(update={"diagram_data_url": data_url})
                    rendered += 1

        logger.info(f"  ✓ {rendered}/{len(pending)} diagram(s) rendered")
        return results
