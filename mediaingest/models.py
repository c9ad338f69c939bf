"""
Models for mediaingest.

Immutable dataclasses for requests and results, plus the ingestion config.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Tuple


class MediaKind(Enum):
    """Closed classification of an ingested file."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT_DOCUMENT = "text_document"
    PDF_DOCUMENT = "pdf_document"
    GENERIC = "generic"

    @property
    def output_dir(self) -> str:
        """Local directory (under uploads/) holding the final artifact."""
        return _OUTPUT_DIRS[self]

    @property
    def archive_partition(self) -> str:
        """Partition name under originais/ for the untouched source."""
        return _ARCHIVE_PARTITIONS[self]

    @property
    def category(self) -> str:
        """Label used in messages; both document kinds read as 'document'."""
        if self in (MediaKind.TEXT_DOCUMENT, MediaKind.PDF_DOCUMENT):
            return "document"
        return self.value


_OUTPUT_DIRS = {
    MediaKind.IMAGE: "imagens",
    MediaKind.VIDEO: "videos",
    MediaKind.AUDIO: "audios",
    MediaKind.TEXT_DOCUMENT: "documentos",
    MediaKind.PDF_DOCUMENT: "documentos",
    MediaKind.GENERIC: "documentos",
}

_ARCHIVE_PARTITIONS = {
    MediaKind.IMAGE: "imagem",
    MediaKind.VIDEO: "videos",
    MediaKind.AUDIO: "audios",
    MediaKind.TEXT_DOCUMENT: "documentos",
    MediaKind.PDF_DOCUMENT: "documentos",
    MediaKind.GENERIC: "documentos",
}


class PipelineStage(Enum):
    """Ordered stages of one ingestion request."""
    VALIDATING = "validating"
    AUTHENTICATING = "authenticating"
    PROVISIONING_FOLDER = "provisioning_folder"
    CONVERTING = "converting"
    ARCHIVING = "archiving"
    UPLOADING = "uploading"
    COMPLETED = "completed"


class IngestionStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class ArtifactKind(Enum):
    ORIGINAL = "original"
    FINAL = "final"


class TransferStatus(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FolderState(Enum):
    UNKNOWN = "unknown"
    CONFIRMED = "confirmed"
    CREATED = "created"


class RetentionPolicy(Enum):
    """What happens to local artifacts once a request is finished."""
    KEEP = "keep"
    PURGE_ON_SUCCESS = "purge_on_success"
    PURGE_ALWAYS = "purge_always"


SUPPORTED_MODES = frozenset({"upload"})


@dataclass(frozen=True)
class Credentials:
    """Owner credentials for the remote store."""
    email: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class UploadRequest:
    """One ingestion request as handed over by the request surface."""
    credentials: Optional[Credentials]
    destination_path: Optional[str]
    mode: Optional[str]
    staged_path: Optional[Path]
    original_name: Optional[str] = None

    @property
    def file_name(self) -> str:
        """Name the user gave the file (falls back to the staged name)."""
        if self.original_name:
            return Path(self.original_name).name
        return Path(self.staged_path).name if self.staged_path else ""

    @property
    def destination_folder(self) -> str:
        """Remote folder that receives the final artifact."""
        parent = (self.destination_path or "").replace("\\", "/").rsplit("/", 1)
        if len(parent) == 1:
            return ""
        return parent[0].strip("/")

    def missing_fields(self) -> Tuple[str, ...]:
        missing = []
        if self.credentials is None or not self.credentials.email:
            missing.append("email")
        if self.credentials is None or not self.credentials.password:
            missing.append("password")
        if not self.mode:
            missing.append("mode")
        if not self.destination_path:
            missing.append("filePath")
        if self.staged_path is None or not Path(self.staged_path).is_file():
            missing.append("file")
        return tuple(missing)


@dataclass(frozen=True)
class MediaAsset:
    """A staged file after classification."""
    local_path: Path
    original_name: str
    kind: MediaKind


@dataclass(frozen=True)
class ConvertedArtifact:
    """Output of the conversion engine (new file or passthrough copy)."""
    path: Path
    kind: MediaKind
    converted: bool = True


@dataclass(frozen=True)
class RemoteFolder:
    """Resolved remote folder."""
    path: str
    handle: Optional[str] = None
    state: FolderState = FolderState.UNKNOWN

    @property
    def ready(self) -> bool:
        return self.state in (FolderState.CONFIRMED, FolderState.CREATED)


@dataclass(frozen=True)
class UploadOutcome:
    """Result of one of the two transfers of a request."""
    artifact: ArtifactKind
    remote_path: str
    status: TransferStatus = TransferStatus.PENDING
    handle: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == TransferStatus.SUCCEEDED

    @classmethod
    def ok(cls, artifact: ArtifactKind, remote_path: str, handle: str):
        return cls(
            artifact=artifact,
            remote_path=remote_path,
            status=TransferStatus.SUCCEEDED,
            handle=handle,
        )

    @classmethod
    def fail(cls, artifact: ArtifactKind, remote_path: str, error: str):
        return cls(
            artifact=artifact,
            remote_path=remote_path,
            status=TransferStatus.FAILED,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artifact": self.artifact.value,
            "remote_path": self.remote_path,
            "status": self.status.value,
            "handle": self.handle,
            "error": self.error,
        }


@dataclass(frozen=True)
class IngestionResult:
    """Terminal result of one ingestion request."""
    status: IngestionStatus
    stage: PipelineStage
    file_name: str = ""
    kind: Optional[MediaKind] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    http_status: int = 200
    final_path: Optional[Path] = None
    original_path: Optional[Path] = None
    outcomes: Tuple[UploadOutcome, ...] = ()
    blake3_hash: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == IngestionStatus.COMPLETED

    @property
    def message(self) -> str:
        if self.success:
            return "File uploaded successfully."
        return self.error or "File processing failed."

    def outcome(self, artifact: ArtifactKind) -> Optional[UploadOutcome]:
        for item in self.outcomes:
            if item.artifact == artifact:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            payload: Dict[str, Any] = {"success": True, "message": self.message}
        else:
            payload = {
                "success": False,
                "error": self.message,
                "error_type": self.error_type,
                "stage": self.stage.value,
            }
        payload["file"] = self.file_name
        payload["kind"] = self.kind.value if self.kind else None
        if self.blake3_hash:
            payload["blake3_hash"] = self.blake3_hash
        if self.outcomes:
            payload["uploads"] = [item.to_dict() for item in self.outcomes]
        return payload


def _env(name: str, default: str) -> str:
    return os.getenv(f"MEDIAINGEST_{name}", default)


@dataclass(frozen=True)
class IngestConfig:
    """Immutable configuration for ingestion."""
    workspace_root: Path = Path(".")
    originals_remote_root: str = "originais"
    image_quality: int = 80
    image_effort: int = 6
    video_codec: str = "libvpx"
    audio_codec_video: str = "libvorbis"
    video_bitrate: str = "500k"
    audio_codec: str = "libmp3lame"
    audio_bitrate: str = "128k"
    ffmpeg_binary: str = "ffmpeg"
    soffice_binary: str = "soffice"
    conversion_timeout: float = 600.0
    retention: RetentionPolicy = RetentionPolicy.KEEP

    @classmethod
    def from_env(cls) -> "IngestConfig":
        """Build config from MEDIAINGEST_* environment variables."""
        defaults = cls()
        return cls(
            workspace_root=Path(_env("WORKSPACE", str(defaults.workspace_root))),
            originals_remote_root=_env("ORIGINALS_ROOT", defaults.originals_remote_root),
            ffmpeg_binary=_env("FFMPEG", defaults.ffmpeg_binary),
            soffice_binary=_env("SOFFICE", defaults.soffice_binary),
            conversion_timeout=float(_env("CONVERSION_TIMEOUT", str(defaults.conversion_timeout))),
            retention=RetentionPolicy(_env("RETENTION", defaults.retention.value)),
        )
