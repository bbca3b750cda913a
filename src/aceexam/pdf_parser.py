# pdf text extraction using pymupdf
from pathlib import Path
from typing import Any, Dict, Union
import logging

from .errors import EmptyDocument

logger = logging.getLogger(__name__)

PDFSource = Union[bytes, str, Path]

# pymupdf module, imported on first use
_engine = None


def load_pdf_engine():
    """Import and initialise PyMuPDF once per process"""
    global _engine
    if _engine is None:
        import fitz  # PyMuPDF

        # keep mupdf warnings out of stderr, we log our own
        fitz.TOOLS.mupdf_display_errors(False)
        _engine = fitz
        logger.debug(f"Loaded PyMuPDF {fitz.VersionBind}")
    return _engine


# class for extracting plain text from uploaded pdf files
class PDFParser:
    # open a pdf from raw bytes or from a path on disk
    def _open(self, source: PDFSource):
        fitz = load_pdf_engine()
        try:
            if isinstance(source, (bytes, bytearray)):
                return fitz.open(stream=bytes(source), filetype="pdf")
            return fitz.open(str(source))
        except Exception as e:
            logger.error(f"Could not open PDF: {str(e)}")
            raise EmptyDocument(
                "The PDF could not be read. Please upload a valid, text-based PDF."
            ) from e

    # extract all page text in page order
    def extract_text(self, source: PDFSource) -> str:
        """Concatenate every page's text, fragments joined by spaces and pages by newlines"""
        doc = self._open(source)
        try:
            full_text = ""
            for page in doc:
                fragments = []
                # collect text spans in reading order
                for block in page.get_text("dict")["blocks"]:
                    if block.get("type") != 0:
                        continue
                    for line in block["lines"]:
                        for span in line["spans"]:
                            if span["text"].strip():
                                fragments.append(span["text"])
                full_text += " ".join(fragments) + "\n"
            page_count = doc.page_count
        finally:
            doc.close()

        if not full_text.strip():
            logger.warning(f"No extractable text across {page_count} page(s)")
            raise EmptyDocument()

        logger.info(f"Extracted {len(full_text)} characters from {page_count} page(s)")
        return full_text

    # extract metadata like title and page count from pdf
    def extract_metadata(self, source: PDFSource) -> Dict[str, Any]:
        """Extract metadata from PDF"""
        try:
            doc = self._open(source)
        except EmptyDocument:
            return {}
        try:
            metadata = doc.metadata or {}
            return {
                'title': metadata.get('title', ''),
                'author': metadata.get('author', ''),
                'subject': metadata.get('subject', ''),
                'creator': metadata.get('creator', ''),
                'page_count': doc.page_count
            }
        finally:
            doc.close()
