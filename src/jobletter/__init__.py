"""Cover letter generation pipeline for job applications."""

__version__ = "0.1.0"
