"""
Error taxonomy for the ingestion pipeline.

Each error knows the stage it belongs to and the HTTP-style status the
request surface reports for it.
"""
from pathlib import Path
from typing import Optional, Sequence

from .models import ArtifactKind, MediaKind, PipelineStage


class IngestError(Exception):
    """Base class for failures that terminate an ingestion request."""

    stage: PipelineStage = PipelineStage.VALIDATING
    http_status: int = 500


class ValidationError(IngestError):
    """Required request fields are missing or invalid."""

    stage = PipelineStage.VALIDATING
    http_status = 400

    def __init__(self, message: str, fields: Sequence[str] = ()):
        super().__init__(message)
        self.fields = tuple(fields)


class AuthError(IngestError):
    """Remote session could not be established."""

    stage = PipelineStage.AUTHENTICATING


class ProvisionError(IngestError):
    """Remote folder lookup/creation failed for a reason other than absence."""

    stage = PipelineStage.PROVISIONING_FOLDER

    def __init__(self, path: str, message: str):
        super().__init__(f"Could not access or create folder '{path or '/'}': {message}")
        self.path = path


class ConversionError(IngestError):
    """External transform failed."""

    stage = PipelineStage.CONVERTING

    def __init__(self, kind: MediaKind, message: str, output_path: Optional[Path] = None):
        super().__init__(f"{kind.category} conversion failed: {message}")
        self.kind = kind
        self.output_path = output_path


class ArchiveError(IngestError):
    """Staged original could not be moved into the local archive."""

    stage = PipelineStage.ARCHIVING


class UploadError(IngestError):
    """One or both transfers failed or were never confirmed."""

    stage = PipelineStage.UPLOADING

    def __init__(self, artifacts: Sequence[ArtifactKind], message: str):
        super().__init__(message)
        self.artifacts = tuple(artifacts)


def describe_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"
