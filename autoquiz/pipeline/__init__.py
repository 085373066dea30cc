"""End-to-end Auto-Create pipeline."""

from .orchestrator import AutoCreatePipeline, build_pipeline, error_envelope, validate_submission

__all__ = ["AutoCreatePipeline", "build_pipeline", "error_envelope", "validate_submission"]
