# error taxonomy shared by the pipeline, the api and the cli
from typing import Optional


class AceExamError(Exception):
    """Base class for every failure the workflow knows how to report"""

    code = "unexpected_error"
    default_message = "An unexpected engine error occurred."

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class EmptyDocument(AceExamError):
    code = "empty_document"
    default_message = "No text found in PDF. Please upload a text-based (not scanned) PDF."


class InvalidInput(AceExamError):
    code = "invalid_input"
    default_message = "Invalid input."


class NoQuestionsFound(AceExamError):
    code = "no_questions_found"
    default_message = "No clear questions detected. Please ensure the PDF is text-based."


class RemoteServiceError(AceExamError):
    code = "remote_service_error"
    default_message = "The AI service failed to process the request."

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class QuotaExceeded(RemoteServiceError):
    code = "quota_exceeded"
    default_message = "AI service quota exhausted (429 RESOURCE_EXHAUSTED). Please try again later."


class AuthenticationRequired(AceExamError):
    code = "authentication_required"
    default_message = (
        "Critical: API key is missing or was rejected. "
        "Set GEMINI_API_KEY or connect a key before processing."
    )


class DocumentAssemblyError(AceExamError):
    code = "document_assembly_error"
    default_message = "Failed to assemble the study guide PDF."


class WorkflowBusy(AceExamError):
    code = "workflow_busy"
    default_message = "A study guide is already being generated. Wait for it to finish or reset."
