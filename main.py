#!/usr/bin/env python3
"""
aceexam

A FastAPI application that turns exam question PDFs into downloadable study
guides: questions are extracted and solved with Gemini, optional diagrams are
rendered, and everything is laid out into a new PDF.

To start the server:
    python main.py
"""

import sys
from pathlib import Path

# add src to python path so the package imports without installing
sys.path.insert(0, str(Path(__file__).parent / "src"))

# start the fastapi server when this file is run
if __name__ == "__main__":
    import uvicorn
    # run the api app on port 8000 with auto-reload for development
    uvicorn.run("aceexam.api:app", host="0.0.0.0", port=8000, reload=True)
