"""
Exception hierarchy for the generation pipeline.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""
    pass


class GatewayError(PipelineError):
    """An upstream AI call failed or returned no usable payload."""
    pass


class GatewayModeError(GatewayError):
    """Search grounding and forced-JSON output were requested together."""
    pass


class DecodeError(PipelineError):
    """Model output could not be decoded into the expected structure."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class StageError(PipelineError):
    """A generation stage (curator, writer) produced unusable output."""
    pass


class EmptyScriptError(StageError):
    """The writer returned an empty script body."""

    def __init__(self, message: str = "Writer returned an empty script body (guion vacío)"):
        super().__init__(message)


class InvalidTransitionError(PipelineError):
    """A status change that the job state machine does not allow."""
    pass


class RecordNotFoundError(PipelineError):
    """A job, pod or staging record does not exist."""
    pass


class ColumnOwnershipError(PipelineError):
    """A writer tried to update a column it does not own."""
    pass


class StorageError(PipelineError):
    """Object storage upload failed."""
    pass


class DispatchError(PipelineError):
    """A fan-out worker could not be invoked."""
    pass


class PathTraversalError(PipelineError):
    """Raised when a storage path would escape its base directory."""
    pass


class JobFailedError(PipelineError):
    """Raised by the orchestrator after it has marked the job failed."""

    def __init__(self, job_id: int, message: str, trace_id: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id
        self.trace_id = trace_id
