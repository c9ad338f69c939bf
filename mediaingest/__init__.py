"""
mediaingest - classify, convert and deliver uploaded files to MEGA.

Each request runs through one pipeline:
- classify the file by extension
- convert it to its delivery format (webp, webm, mp3, pdf or passthrough)
- archive the untouched original locally
- upload original and final artifact to MEGA, waiting for both

Usage:
    from mediaingest import IngestionPipeline, LocalWorkspace, UploadRequest, Credentials

    workspace = LocalWorkspace(Path(".")).ensure()
    pipeline = IngestionPipeline(workspace)
    result = await pipeline.run(UploadRequest(
        credentials=Credentials("me@example.com", "secret"),
        destination_path="/Photos/2026/photo.jpg",
        mode="upload",
        staged_path=workspace.stage_file(Path("photo.jpg")),
        original_name="photo.jpg",
    ))
"""
from .orchestrator import IngestionPipeline
from .models import (
    Credentials,
    IngestConfig,
    IngestionResult,
    IngestionStatus,
    MediaKind,
    PipelineStage,
    RetentionPolicy,
    UploadOutcome,
    UploadRequest,
)
from .errors import (
    IngestError,
    ValidationError,
    AuthError,
    ProvisionError,
    ConversionError,
    ArchiveError,
    UploadError,
)
from .services import (
    ConversionEngine,
    DualArtifactUploader,
    LocalWorkspace,
    MegaSessionFactory,
    RemoteFolderProvisioner,
    TypeClassifier,
    classify,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "IngestionPipeline",
    # Models
    "Credentials",
    "IngestConfig",
    "IngestionResult",
    "IngestionStatus",
    "MediaKind",
    "PipelineStage",
    "RetentionPolicy",
    "UploadOutcome",
    "UploadRequest",
    # Errors
    "IngestError",
    "ValidationError",
    "AuthError",
    "ProvisionError",
    "ConversionError",
    "ArchiveError",
    "UploadError",
    # Services
    "ConversionEngine",
    "DualArtifactUploader",
    "LocalWorkspace",
    "MegaSessionFactory",
    "RemoteFolderProvisioner",
    "TypeClassifier",
    "classify",
]
