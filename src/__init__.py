"""Task orchestration and caching for remote Tingwu transcription jobs."""

__version__ = "1.0.0"
