import typer
import os
import shutil
from pathlib import Path
from typing import Optional
import logging
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .catalog import ACADEMIC_STRUCTURE
from .errors import AceExamError
from .models import ProcessStatus
from .processing_service import AuthGate, StudyGuideWorkflow

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Typer app
app = typer.Typer(
    name="aceexam",
    help="Turn exam question PDFs into AI-generated study guides",
    add_completion=False
)

# Initialize console for rich output
console = Console()


@app.command()
def solve(
    pdf_path: str = typer.Argument(..., help="Path to the exam PDF to process"),
    subject: str = typer.Option(..., "--subject", "-s", help="Course or subject name"),
    field: Optional[str] = typer.Option(None, "--field", "-f", help="Academic field (see `aceexam fields`)"),
    sub_field: Optional[str] = typer.Option(None, "--sub-field", help="Specialization within the field"),
    output_dir: Optional[str] = typer.Option(None, "--output", "-o", help="Directory for the generated guide"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Gemini API key (defaults to GEMINI_API_KEY)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
):
    """Generate a study guide PDF from an exam PDF"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate inputs
    if not os.path.exists(pdf_path):
        console.print(f"[red]Error: PDF file not found: {pdf_path}[/red]")
        raise typer.Exit(1)

    if not pdf_path.lower().endswith('.pdf'):
        console.print("[red]Error: File must be a PDF[/red]")
        raise typer.Exit(1)

    auth_gate = AuthGate()
    try:
        if api_key:
            auth_gate.connect(api_key)
        auth_gate.check()

        workflow = StudyGuideWorkflow(auth_gate=auth_gate, output_dir=Path(output_dir) if output_dir else None)
        workflow.update_context(field=field, sub_field=sub_field, subject=subject)
    except AceExamError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        task = progress.add_task("Starting...", total=None)
        workflow.subscribe(
            lambda state: progress.update(task, description=f"{state.message} ({state.progress}%)")
        )
        try:
            state = workflow.process(Path(pdf_path))
        except AceExamError as e:
            console.print(f"[red]Error: {e.message}[/red]")
            raise typer.Exit(1)

    if state.status != ProcessStatus.COMPLETED:
        console.print(f"[red]Error: {state.message}[/red]")
        raise typer.Exit(1)

    display_results(workflow)
    console.print(f"[green]✓ Study guide saved to: {workflow.document_path}[/green]")


@app.command()
def fields():
    """List academic fields and their specializations"""
    table = Table(title="Academic Fields")
    table.add_column("Field", style="cyan")
    table.add_column("Specializations", style="magenta")

    for name, specializations in ACADEMIC_STRUCTURE.items():
        table.add_row(name, ", ".join(specializations))

    console.print(table)


def display_results(workflow: StudyGuideWorkflow):
    """Display a summary of the solved questions"""
    context = workflow.context
    console.print(f"\n[bold blue]Study Guide: {context.subject}[/bold blue]")
    console.print(f"[dim]{context.field} / {context.sub_field}[/dim]\n")

    table = Table(title="Solved Questions")
    table.add_column("#", style="cyan")
    table.add_column("Question")
    table.add_column("Diagram", style="magenta")
    table.add_column("References", style="green")

    width = max(20, shutil.get_terminal_size().columns - 40)
    for item in workflow.results:
        question = item.question if len(item.question) <= width else item.question[:width - 3] + "..."
        references = sum(1 for url in (item.reference_doc_url, item.reference_video_url) if url)
        table.add_row(item.number, question, "yes" if item.diagram_data_url else "-", str(references))

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind the server to"),
    port: int = typer.Option(8000, "--port", help="Port to bind the server to")
):
    """Start the FastAPI server"""

    console.print(f"[green]Starting server on {host}:{port}[/green]")

    import uvicorn
    uvicorn.run("aceexam.api:app", host=host, port=port, reload=True)


if __name__ == "__main__":
    app()
