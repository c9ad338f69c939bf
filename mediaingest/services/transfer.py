"""
Transfer Service - Single Responsibility: deliver both artifacts of a request.

The archived original and the final artifact are uploaded concurrently;
both transfers are awaited and reported separately.
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from ..errors import describe_exception
from ..models import ArtifactKind, RemoteFolder, UploadOutcome

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ArtifactKind, Any], None]


class DualArtifactUploader:
    """
    Uploads the original and final artifacts of one request.

    Usage:
        uploader = DualArtifactUploader()
        original, final = await uploader.upload_pair(
            client, original_path, final_path, dest_folder, originals_folder
        )
    """

    def __init__(self, progress_callback: Optional[ProgressCallback] = None):
        self._progress_callback = progress_callback

    async def upload_pair(
        self,
        session: Any,
        original_path: Path,
        final_path: Path,
        destination_folder: RemoteFolder,
        originals_folder: RemoteFolder,
    ) -> Tuple[UploadOutcome, UploadOutcome]:
        """
        Upload both artifacts and wait for both to settle.

        Args:
            session: Authenticated MEGA client
            original_path: Archived original on local disk
            final_path: Converted (or passthrough) artifact on local disk
            destination_folder: Resolved folder for the final artifact
            originals_folder: Resolved originais/<partition> folder

        Returns:
            (original outcome, final outcome); never raises for transfer errors
        """
        for folder in (destination_folder, originals_folder):
            if not folder.ready:
                raise RuntimeError(f"Folder not provisioned: /{folder.path}")

        original, final = await asyncio.gather(
            self._transfer(session, ArtifactKind.ORIGINAL, Path(original_path), originals_folder),
            self._transfer(session, ArtifactKind.FINAL, Path(final_path), destination_folder),
        )
        return original, final

    async def _transfer(
        self,
        session: Any,
        artifact: ArtifactKind,
        path: Path,
        folder: RemoteFolder,
    ) -> UploadOutcome:
        remote_path = f"{folder.path}/{path.name}" if folder.path else path.name
        logger.info("Uploading %s artifact to /%s", artifact.value, remote_path)

        progress = None
        if self._progress_callback:
            callback = self._progress_callback

            def progress(value, _artifact=artifact):
                callback(_artifact, value)

        try:
            node = await session.upload(
                path,
                dest_folder=folder.handle,
                name=path.name,
                progress_callback=progress,
            )
        except Exception as e:
            error = describe_exception(e)
            logger.error("Upload of %s artifact failed: %s", artifact.value, error, exc_info=True)
            return UploadOutcome.fail(artifact, remote_path, error)

        if not node:
            logger.error("Upload of %s artifact was not confirmed", artifact.value)
            return UploadOutcome.fail(artifact, remote_path, "Upload to MEGA was not confirmed")

        logger.info("Uploaded %s artifact: /%s (handle: %s)", artifact.value, remote_path, node.handle)
        return UploadOutcome.ok(artifact, remote_path, node.handle)
