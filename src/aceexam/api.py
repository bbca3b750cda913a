# fastapi web api for exam pdf to study guide conversion
from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
import logging
from typing import List

from . import __version__
from .catalog import ACADEMIC_STRUCTURE
from .errors import (
    AceExamError, AuthenticationRequired, DocumentAssemblyError, EmptyDocument, InvalidInput,
    NoQuestionsFound, QuotaExceeded, RemoteServiceError, WorkflowBusy
)
from .models import (
    AcademicContext, AuthStatus, AuthStatusResponse, CatalogResponse, ContextUpdateRequest, ProcessingState,
    QuestionItem, UploadResponse, WorkflowSnapshot
)
from .processing_service import StudyGuideWorkflow

# configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# initialize fastapi application
app = FastAPI(
    title="AceExam Study Guide API",
    description="Turn exam question PDFs into AI-generated study guides",
    version=__version__
)

# add cors middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# http status for each failure in the taxonomy (most specific first)
ERROR_STATUS = [
    (QuotaExceeded, 429),
    (RemoteServiceError, 502),
    (AuthenticationRequired, 401),
    (InvalidInput, 400),
    (EmptyDocument, 422),
    (NoQuestionsFound, 422),
    (WorkflowBusy, 409),
    (DocumentAssemblyError, 500),
]

# single workflow shared by the browser session
workflow = StudyGuideWorkflow()


@app.exception_handler(AceExamError)
async def aceexam_error_handler(request: Request, exc: AceExamError):
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    logger.warning(f"{request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


# ============================================================================
# API ROUTES
# ============================================================================

@app.get("/catalog", response_model=CatalogResponse)
async def get_catalog():
    """Academic fields and their specializations"""
    return CatalogResponse(catalog=ACADEMIC_STRUCTURE)


@app.get("/context", response_model=AcademicContext)
async def get_context():
    return workflow.context


@app.put("/context", response_model=AcademicContext)
async def update_context(request: ContextUpdateRequest):
    """Change field, specialization and/or subject"""
    return workflow.update_context(
        field=request.field,
        sub_field=request.sub_field,
        subject=request.subject,
    )


@app.get("/auth/status", response_model=AuthStatusResponse)
async def auth_status():
    status = workflow.auth_gate.refresh()
    message = "API key available" if status == AuthStatus.AUTHENTICATED else "Connect an API key to continue"
    return AuthStatusResponse(status=status, message=message)


@app.post("/auth/connect", response_model=AuthStatusResponse)
async def auth_connect(api_key: str = Form(...)):
    """Connect an API key for this session"""
    workflow.auth_gate.connect(api_key)
    return AuthStatusResponse(status=workflow.auth_gate.status, message="API key connected")


# endpoint to upload an exam pdf and start a run
@app.post("/upload", status_code=202, response_model=UploadResponse)
async def upload_pdf(background_tasks: BackgroundTasks, file: UploadFile = File(...)):
    """Upload a PDF file and generate its study guide in the background"""
    # validate file is pdf
    if not file.filename or not file.filename.lower().endswith('.pdf'):
        raise HTTPException(status_code=400, detail="File must be a PDF")

    content = await file.read()

    # gates: credential, then subject / idle state; none of them touch the state
    workflow.auth_gate.check()
    workflow.start()

    logger.info(f"File uploaded: {file.filename} ({len(content)} bytes)")
    background_tasks.add_task(workflow.execute, content)

    return UploadResponse(
        message="Processing started",
        filename=file.filename,
        file_size=len(content),
        state=workflow.state
    )


@app.get("/status", response_model=ProcessingState)
async def get_processing_status():
    return workflow.state


@app.get("/results", response_model=List[QuestionItem])
async def get_results():
    return workflow.results


@app.get("/session", response_model=WorkflowSnapshot)
async def get_session():
    """State, context and results in one call"""
    return workflow.snapshot()


@app.get("/download")
async def download_study_guide():
    """Download the generated study guide PDF"""
    if not workflow.document_ready():
        raise HTTPException(status_code=404, detail="Study guide not found")

    return FileResponse(
        path=str(workflow.document_path),
        filename=workflow.download_filename(),
        media_type="application/pdf"
    )


@app.post("/reset", response_model=ProcessingState)
async def reset_workflow():
    """Back to idle; drops results and the generated document"""
    workflow.reset()
    return workflow.state


@app.get("/")
@app.get("/api")
async def api_info():
    """API information endpoint"""
    return {
        "message": "AceExam Study Guide API",
        "version": __version__,
        "endpoints": {
            "catalog": "/catalog",
            "context": "/context",
            "auth": "/auth/status",
            "upload": "/upload",
            "status": "/status",
            "results": "/results",
            "download": "/download",
            "reset": "/reset",
            "health": "/health"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "aceexam"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("aceexam.api:app", host="0.0.0.0", port=8000, reload=True)
