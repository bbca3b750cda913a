import re
import time
import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional

from . import config
from .catalog import default_context, sub_fields_for, validate_context
from .diagram_generator import DiagramGenerator
from .errors import (
    AceExamError, AuthenticationRequired, InvalidInput, NoQuestionsFound, WorkflowBusy
)
from .models import (
    AcademicContext, AuthStatus, ProcessingState, ProcessStatus, QuestionItem, WorkflowSnapshot
)
from .pdf_parser import PDFParser, PDFSource
from .question_extractor import QuestionExtractor
from .solution_generator import SolutionGenerator
from .study_guide import StudyGuideBuilder

logger = logging.getLogger(__name__)

# target progress and status line for every stage
STAGES = {
    ProcessStatus.IDLE: (0, "Engine Standby"),
    ProcessStatus.EXTRACTING: (10, "Ingesting Document..."),
    ProcessStatus.ANALYZING: (30, "Parsing Question Structure..."),
    ProcessStatus.GENERATING: (60, "Solving Questions..."),
    ProcessStatus.GENERATING_DIAGRAMS: (85, "Generating Technical Visuals..."),
    ProcessStatus.CREATING_PDF: (95, "Exporting Comprehensive Guide..."),
    ProcessStatus.COMPLETED: (100, "Process Finished"),
}

RUNNING_STATES = {
    ProcessStatus.EXTRACTING,
    ProcessStatus.ANALYZING,
    ProcessStatus.GENERATING,
    ProcessStatus.GENERATING_DIAGRAMS,
    ProcessStatus.CREATING_PDF,
}


# credential gate: unauthenticated -> prompting auth -> authenticated
class AuthGate:
    def __init__(self, env_lookup: Callable[[], Optional[str]] = config.get_env_api_key):
        self._env_lookup = env_lookup
        self._lock = threading.Lock()
        self._api_key: Optional[str] = None
        self._rejected_key: Optional[str] = None
        self.status = AuthStatus.UNAUTHENTICATED

    # resolve the credential for a run, or switch to prompting for one
    def check(self) -> str:
        with self._lock:
            key = self._api_key
            if not key:
                env_key = self._env_lookup()
                if env_key and env_key != self._rejected_key:
                    key = env_key
            if key:
                self.status = AuthStatus.AUTHENTICATED
                return key
            self.status = AuthStatus.PROMPTING_AUTH
        raise AuthenticationRequired()

    def connect(self, api_key: str):
        """Store a user-supplied key"""
        if not api_key or not api_key.strip():
            raise InvalidInput("API key must not be blank")
        with self._lock:
            self._api_key = api_key.strip()
            self._rejected_key = None
            self.status = AuthStatus.AUTHENTICATED
        logger.info("API key connected")

    # forget a key the remote service refused
    def reject(self):
        with self._lock:
            self._rejected_key = self._api_key or self._env_lookup()
            self._api_key = None
            self.status = AuthStatus.PROMPTING_AUTH
        logger.warning("API key rejected, prompting for a new one")

    def refresh(self) -> AuthStatus:
        """Re-check the credential without raising"""
        try:
            self.check()
        except AuthenticationRequired:
            pass
        return self.status


# workflow controller: orchestrates extraction, solving, diagrams and pdf assembly
class StudyGuideWorkflow:
    def __init__(
        self,
        pdf_parser: Optional[PDFParser] = None,
        question_extractor: Optional[QuestionExtractor] = None,
        solution_generator: Optional[SolutionGenerator] = None,
        diagram_generator: Optional[DiagramGenerator] = None,
        auth_gate: Optional[AuthGate] = None,
        output_dir: Optional[Path] = None,
    ):
        self.pdf_parser = pdf_parser or PDFParser()
        self.question_extractor = question_extractor or QuestionExtractor()
        self.solution_generator = solution_generator or SolutionGenerator()
        self.diagram_generator = diagram_generator or DiagramGenerator()
        self.auth_gate = auth_gate or AuthGate()

        # create output directory
        self.output_dir = Path(output_dir or config.OUTPUT_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._listeners: List[Callable[[ProcessingState], None]] = []
        self.context: AcademicContext = default_context()
        self.state = ProcessingState()
        self.results: List[QuestionItem] = []
        self.document_path: Optional[Path] = None

    # ------------------------------------------------------------ state

    @property
    def is_running(self) -> bool:
        return self.state.status in RUNNING_STATES

    def subscribe(self, listener: Callable[[ProcessingState], None]):
        """Call listener with every new ProcessingState"""
        self._listeners.append(listener)

    # replace the state wholesale and notify listeners
    def _set_state(self, status: ProcessStatus, message: Optional[str] = None):
        progress, default_message = STAGES[status]
        self._replace_state(ProcessingState(status=status, progress=progress, message=message or default_message))

    def _replace_state(self, state: ProcessingState):
        with self._lock:
            self.state = state
        logger.debug(f"State -> {state.status.value} ({state.progress}%)")
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning(f"State listener failed: {str(e)}")

    def _fail(self, error: Exception, code: str):
        message = str(error) or AceExamError.default_message
        logger.error(f"✗ ERROR: {message}")
        self._replace_state(
            ProcessingState(status=ProcessStatus.ERROR, progress=0, message=message, error_code=code)
        )

    def _ensure_not_running(self):
        if self.is_running:
            raise WorkflowBusy()

    # ------------------------------------------------------------ context

    def set_field(self, field: str):
        """Select a field; the specialization resets to the field's first entry"""
        with self._lock:
            self._ensure_not_running()
            first = sub_fields_for(field)[0]
            self.context = AcademicContext(field=field, sub_field=first, subject=self.context.subject)

    def set_sub_field(self, sub_field: str):
        with self._lock:
            self._ensure_not_running()
            if sub_field not in sub_fields_for(self.context.field):
                raise InvalidInput(f"{sub_field!r} is not a specialization of {self.context.field!r}")
            self.context = self.context.model_copy(update={"sub_field": sub_field})

    def set_subject(self, subject: str):
        with self._lock:
            self._ensure_not_running()
            self.context = self.context.model_copy(update={"subject": subject or ""})

    def update_context(self, field: Optional[str] = None, sub_field: Optional[str] = None, subject: Optional[str] = None):
        """Apply several context changes at once; nothing changes unless all of them are valid"""
        with self._lock:
            self._ensure_not_running()
            candidate = self.context
            if field is not None and field != candidate.field:
                candidate = AcademicContext(field=field, sub_field=sub_fields_for(field)[0], subject=candidate.subject)
            if sub_field is not None:
                candidate = candidate.model_copy(update={"sub_field": sub_field})
            if subject is not None:
                candidate = candidate.model_copy(update={"subject": subject})
            self.context = validate_context(candidate)
            return self.context

    # ------------------------------------------------------------ run

    def start(self):
        """Idle -> Extracting, gated on a non-blank subject; raises without touching state"""
        with self._lock:
            self._ensure_not_running()
            if self.state.status != ProcessStatus.IDLE:
                raise WorkflowBusy("Reset the previous run before uploading a new document.")
            if not self.context.subject.strip():
                raise InvalidInput("Subject Title is mandatory before ingestion.")
            self.results = []
            self._set_state(ProcessStatus.EXTRACTING)

    def execute(self, source: PDFSource) -> ProcessingState:
        """Run every stage after start(); ends in COMPLETED or ERROR, never raises"""
        start_time = time.time()
        context = self.context
        try:
            logger.info("=" * 60)
            logger.info(f"Starting study guide run for subject: {context.subject}")

            # Step 1: extract text
            logger.info("Step 1: Extracting text...")
            raw_text = self.pdf_parser.extract_text(source)
            metadata = self.pdf_parser.extract_metadata(source)
            logger.info(f"  ✓ Text extracted: {metadata.get('page_count', '?')} page(s), {len(raw_text)} characters")
            api_key = self.auth_gate.check()

            # Step 2: find questions
            self._set_state(ProcessStatus.ANALYZING)
            logger.info("Step 2: Extracting questions...")
            questions = self.question_extractor.extract(raw_text, api_key)
            if not questions:
                raise NoQuestionsFound()
            self.results = questions
            logger.info(f"  ✓ Questions found: {len(questions)}")

            # Step 3: solve
            self._set_state(ProcessStatus.GENERATING)
            logger.info("Step 3: Solving questions...")
            solved = self.solution_generator.solve(questions, context, api_key)
            self.results = solved

            # Step 4: diagrams, failures only drop the diagram
            self._set_state(ProcessStatus.GENERATING_DIAGRAMS)
            logger.info("Step 4: Generating diagrams...")
            solved = self.diagram_generator.render_all(solved, api_key)
            self.results = solved

            # Step 5: assemble pdf
            self._set_state(ProcessStatus.CREATING_PDF)
            logger.info("Step 5: Creating PDF...")
            pdf_bytes = StudyGuideBuilder().build(solved, context)
            self._publish_document(pdf_bytes)

            self._set_state(ProcessStatus.COMPLETED)
            logger.info(f"✓ SUCCESS! Completed in {time.time() - start_time:.2f} seconds")
            logger.info("=" * 60)

        except AuthenticationRequired as e:
            self.auth_gate.reject()
            self._fail(e, e.code)
        except AceExamError as e:
            self._fail(e, e.code)
        except Exception as e:
            logger.error(f"Unexpected workflow failure: {str(e)}", exc_info=True)
            self._fail(e, AceExamError.code)

        return self.state

    def process(self, source: PDFSource) -> ProcessingState:
        """start() then execute()"""
        self.start()
        return self.execute(source)

    def reset(self):
        """Completed/Error -> Idle; drops results and the generated document"""
        with self._lock:
            self._ensure_not_running()
            self._release_document()
            self.results = []
            self._set_state(ProcessStatus.IDLE)

    # ------------------------------------------------------------ output

    def download_filename(self) -> str:
        """Name of the published guide, or the name the next one will get"""
        if self.document_path is not None:
            return self.document_path.name
        subject = re.sub(r'[\\/]', '-', self.context.subject.strip())
        subject = re.sub(r'\s+', '_', subject)
        return f"{config.PRODUCT_NAME}_Guide_{subject}.pdf"

    def _release_document(self):
        if self.document_path is not None:
            try:
                self.document_path.unlink()
                logger.debug(f"Released {self.document_path}")
            except FileNotFoundError:
                pass
            self.document_path = None

    def _publish_document(self, pdf_bytes: bytes):
        # the previous artifact goes before the new one is written
        self._release_document()
        path = self.output_dir / self.download_filename()
        path.write_bytes(pdf_bytes)
        self.document_path = path
        logger.info(f"  ✓ Saved: {path}")

    def document_ready(self) -> bool:
        return (
            self.state.status == ProcessStatus.COMPLETED
            and self.document_path is not None
            and self.document_path.exists()
        )

    def snapshot(self) -> WorkflowSnapshot:
        ready = self.document_ready()
        return WorkflowSnapshot(
            state=self.state,
            context=self.context,
            results=list(self.results),
            download_ready=ready,
            download_filename=self.download_filename() if ready else None,
        )
