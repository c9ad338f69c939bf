"""
Ingestion pipeline - drives one request through every stage.

    VALIDATING -> AUTHENTICATING -> PROVISIONING_FOLDER -> CONVERTING
               -> ARCHIVING -> UPLOADING -> COMPLETED

Any stage may end the request with FAILED(stage, cause). Nothing is
uploaded before both target folders are resolved, and COMPLETED is only
reported once both transfers are confirmed. Local artifacts of a file
name are claimed from CONVERTING until retention has run.
"""
import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

from ..errors import (
    ArchiveError,
    IngestError,
    UploadError,
    ValidationError,
    describe_exception,
)
from ..models import (
    SUPPORTED_MODES,
    ConvertedArtifact,
    IngestConfig,
    IngestionResult,
    IngestionStatus,
    MediaAsset,
    MediaKind,
    PipelineStage,
    RetentionPolicy,
    UploadOutcome,
    UploadRequest,
)
from ..services.classifier import TypeClassifier
from ..services.converter import ConversionEngine
from ..services.folders import RemoteFolderProvisioner
from ..services.hashing import blake3_file
from ..services.session import MegaSessionFactory
from ..services.transfer import DualArtifactUploader
from ..services.workspace import LocalWorkspace
from ..utils.events import EventEmitter

logger = logging.getLogger(__name__)


@dataclass
class _RequestState:
    """Mutable bookkeeping for one run."""
    request: UploadRequest
    stage: PipelineStage = PipelineStage.VALIDATING
    kind: Optional[MediaKind] = None
    artifact: Optional[ConvertedArtifact] = None
    original_path: Optional[Path] = None
    blake3_hash: Optional[str] = None
    outcomes: List[UploadOutcome] = field(default_factory=list)


class IngestionPipeline:
    """
    Orchestrates ingestion using injected services.

    Usage:
        workspace = LocalWorkspace(root).ensure()
        pipeline = IngestionPipeline(workspace)
        pipeline.on_stage(lambda stage, request: print(stage.value))
        result = await pipeline.run(request)
    """

    def __init__(
        self,
        workspace: LocalWorkspace,
        session_factory: Optional[MegaSessionFactory] = None,
        config: Optional[IngestConfig] = None,
        classifier: Optional[TypeClassifier] = None,
        converter: Optional[ConversionEngine] = None,
        provisioner: Optional[RemoteFolderProvisioner] = None,
        uploader: Optional[DualArtifactUploader] = None,
    ):
        """
        Initialize pipeline with dependencies.

        Args:
            workspace: Bootstrapped local workspace (ensure() already called)
            session_factory: Opens/closes one MEGA session per request
            config: Ingestion configuration
            classifier: Extension -> MediaKind
            converter: Conversion engine
            provisioner: Remote folder get-or-create (shared across requests)
            uploader: Dual artifact uploader
        """
        if not workspace.is_ready():
            raise RuntimeError(
                f"Workspace {workspace.root} is not initialized; call ensure() at startup"
            )
        self._workspace = workspace
        self._config = config or IngestConfig()
        self._sessions = session_factory or MegaSessionFactory()
        self._classifier = classifier or TypeClassifier()
        self._converter = converter or ConversionEngine(workspace, self._config)
        self._provisioner = provisioner or RemoteFolderProvisioner()
        self._uploader = uploader or DualArtifactUploader()
        self._events = EventEmitter()

    @property
    def workspace(self) -> LocalWorkspace:
        return self._workspace

    def on_stage(self, callback: Callable):
        """Called with (stage, request) whenever a stage starts."""
        self._events.on("stage", callback)

    def on_finish(self, callback: Callable):
        """Called with the IngestionResult when a request ends."""
        self._events.on("finish", callback)

    async def run(self, request: UploadRequest) -> IngestionResult:
        """
        Run one request end to end.

        Returns:
            IngestionResult (COMPLETED or FAILED); pipeline failures are
            reported in the result, not raised
        """
        state = _RequestState(request=request)
        session: Any = None

        # Released only after retention: local artifacts of this file name
        # belong to this request until then
        async with AsyncExitStack() as local_claim:
            try:
                await self._enter(state, PipelineStage.VALIDATING)
                self._validate(request)

                await self._enter(state, PipelineStage.AUTHENTICATING)
                session = await self._sessions.open(request.credentials)

                await self._enter(state, PipelineStage.PROVISIONING_FOLDER)
                destination = await self._provisioner.ensure_folder(session, request.destination_folder)

                await self._enter(state, PipelineStage.CONVERTING)
                state.kind = self._classifier.classify(request.file_name)
                await local_claim.enter_async_context(
                    self._workspace.claim(state.kind, request.file_name)
                )
                await self._convert(state)

                await self._enter(state, PipelineStage.ARCHIVING)
                await self._archive(state)

                await self._enter(state, PipelineStage.UPLOADING)
                originals = await self._provisioner.ensure_folder(
                    session,
                    f"{self._config.originals_remote_root}/{state.kind.archive_partition}",
                )
                outcomes = await self._uploader.upload_pair(
                    session,
                    state.original_path,
                    state.artifact.path,
                    destination,
                    originals,
                )
                state.outcomes = list(outcomes)
                self._check_outcomes(state.outcomes)

                await self._enter(state, PipelineStage.COMPLETED)
                result = self._result(state)
            except IngestError as e:
                logger.error("Ingestion of %s failed at %s: %s", request.file_name, state.stage.value, e)
                result = self._result(state, e)
            finally:
                if session is not None:
                    await self._sessions.close(session)

            self._apply_retention(state, result)

        await self._events.emit("finish", result)
        return result

    async def _enter(self, state: _RequestState, stage: PipelineStage) -> None:
        state.stage = stage
        logger.info("[%s] %s", state.request.file_name or "-", stage.value)
        await self._events.emit("stage", stage, state.request)

    @staticmethod
    def _validate(request: UploadRequest) -> None:
        missing = request.missing_fields()
        if missing:
            raise ValidationError(
                f"Email, password, mode, filePath and file are required (missing: {', '.join(missing)})",
                missing,
            )
        if request.mode not in SUPPORTED_MODES:
            raise ValidationError(f"Unsupported mode: {request.mode}", ("mode",))

    async def _convert(self, state: _RequestState) -> None:
        request = state.request
        asset = MediaAsset(
            local_path=Path(request.staged_path),
            original_name=request.file_name,
            kind=state.kind,
        )
        try:
            state.artifact = await self._converter.convert(asset)
        except IngestError as e:
            output_path = getattr(e, "output_path", None)
            if output_path is not None:
                self._workspace.discard(output_path)
            raise

    async def _archive(self, state: _RequestState) -> None:
        request = state.request
        try:
            state.original_path = await asyncio.to_thread(
                self._workspace.archive,
                Path(request.staged_path),
                state.kind,
                request.file_name,
            )
        except OSError as e:
            raise ArchiveError(f"Could not archive original: {describe_exception(e)}") from e
        state.blake3_hash = await blake3_file(state.original_path)

    @staticmethod
    def _check_outcomes(outcomes: List[UploadOutcome]) -> None:
        failed = [outcome for outcome in outcomes if not outcome.success]
        if not failed:
            return
        details = "; ".join(f"{o.artifact.value}: {o.error}" for o in failed)
        raise UploadError([o.artifact for o in failed], f"Upload failed ({details})")

    @staticmethod
    def _result(state: _RequestState, error: Optional[IngestError] = None) -> IngestionResult:
        common = dict(
            file_name=state.request.file_name,
            kind=state.kind,
            final_path=state.artifact.path if state.artifact else None,
            original_path=state.original_path,
            outcomes=tuple(state.outcomes),
            blake3_hash=state.blake3_hash,
        )
        if error is None:
            return IngestionResult(
                status=IngestionStatus.COMPLETED,
                stage=PipelineStage.COMPLETED,
                **common,
            )
        return IngestionResult(
            status=IngestionStatus.FAILED,
            stage=state.stage,
            error=str(error),
            error_type=type(error).__name__,
            http_status=error.http_status,
            **common,
        )

    def _apply_retention(self, state: _RequestState, result: IngestionResult) -> None:
        policy = self._config.retention
        if policy == RetentionPolicy.KEEP:
            return
        if policy == RetentionPolicy.PURGE_ON_SUCCESS and not result.success:
            return

        staged = state.request.staged_path
        # Staged file only survives when archiving never happened
        leftovers = [result.original_path, result.final_path]
        if staged is not None and state.original_path is None:
            leftovers.append(Path(staged))
        logger.debug("Retention %s: removing %d local artifact(s)", policy.value, len(leftovers))
        self._workspace.discard(*leftovers)
