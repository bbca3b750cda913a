# aceexam: turns exam question pdfs into ai generated study guides
__version__ = "1.0.0"
