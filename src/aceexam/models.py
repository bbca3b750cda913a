# pydantic models for data validation and structure
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Optional
from enum import Enum


# stages of the study guide workflow, in forward order
class ProcessStatus(str, Enum):
    IDLE = "IDLE"
    EXTRACTING = "EXTRACTING"
    ANALYZING = "ANALYZING"
    GENERATING = "GENERATING"
    GENERATING_DIAGRAMS = "GENERATING_DIAGRAMS"
    CREATING_PDF = "CREATING_PDF"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


# states of the credential gate in front of the workflow
class AuthStatus(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    PROMPTING_AUTH = "PROMPTING_AUTH"
    AUTHENTICATED = "AUTHENTICATED"


# base for models exchanged with the remote model and the browser (camelCase on the wire)
class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# one exam question and everything derived from it
class QuestionItem(WireModel):
    number: str
    question: str
    answer: Optional[str] = None
    diagram_prompt: Optional[str] = Field(default=None, alias="diagramPrompt")
    diagram_data_url: Optional[str] = Field(default=None, alias="diagramDataUrl")
    reference_doc_url: Optional[str] = Field(default=None, alias="referenceDocUrl")
    reference_video_url: Optional[str] = Field(default=None, alias="referenceVideoUrl")


# field / specialization / subject triple that steers the solutions
class AcademicContext(WireModel):
    field: str
    sub_field: str = Field(alias="subField")
    subject: str = ""


# progress snapshot owned by the workflow controller
class ProcessingState(BaseModel):
    status: ProcessStatus = ProcessStatus.IDLE
    progress: int = 0
    message: str = "Engine Standby"
    error_code: Optional[str] = None


# response model for a pdf upload
class UploadResponse(BaseModel):
    message: str
    filename: str
    file_size: int
    state: ProcessingState


# full view of the workflow for the browser
class WorkflowSnapshot(WireModel):
    state: ProcessingState
    context: AcademicContext
    results: List[QuestionItem] = []
    download_ready: bool = Field(default=False, alias="downloadReady")
    download_filename: Optional[str] = Field(default=None, alias="downloadFilename")


# response model for the credential gate
class AuthStatusResponse(BaseModel):
    status: AuthStatus
    message: str


# response model listing the academic catalog
class CatalogResponse(BaseModel):
    catalog: Dict[str, List[str]]


# request model for changing the academic context
class ContextUpdateRequest(WireModel):
    field: Optional[str] = None
    sub_field: Optional[str] = Field(default=None, alias="subField")
    subject: Optional[str] = None
