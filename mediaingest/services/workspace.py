"""
Workspace Service - Single Responsibility: own the local directory layout.

Layout under the workspace root:

    uploads/                 staged files (random names)
    uploads/imagens/         converted images (.webp)
    uploads/videos/          converted videos (.webm)
    uploads/audios/          compressed audio (.mp3)
    uploads/documentos/      PDFs and passthrough files
    uploads/originais/<partition>/   archived originals
    downloads/               reserved
"""
import logging
import shutil
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Iterable, List, Optional

from ..models import MediaKind
from ..utils.locks import KeyedLock

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class LocalWorkspace:
    """Local staging/archive directories used by the pipeline."""

    def __init__(self, root: Path):
        self._root = Path(root)
        self._uploads = self._root / "uploads"
        self._downloads = self._root / "downloads"
        self._originals = self._uploads / "originais"
        self._claims = KeyedLock()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def uploads_dir(self) -> Path:
        return self._uploads

    @property
    def downloads_dir(self) -> Path:
        return self._downloads

    def output_dir(self, kind: MediaKind) -> Path:
        return self._uploads / kind.output_dir

    def archive_dir(self, kind: MediaKind) -> Path:
        return self._originals / kind.archive_partition

    def required_dirs(self) -> Iterable[Path]:
        yield self._downloads
        yield self._uploads
        yield self._originals
        for kind in MediaKind:
            yield self.output_dir(kind)
            yield self.archive_dir(kind)

    def ensure(self) -> "LocalWorkspace":
        """Create every required directory. Safe to call repeatedly."""
        for directory in self.required_dirs():
            if not directory.exists():
                logger.debug("Creating workspace directory: %s", directory)
                directory.mkdir(parents=True, exist_ok=True)
        return self

    def is_ready(self) -> bool:
        return all(directory.is_dir() for directory in self.required_dirs())

    def _staging_path(self) -> Path:
        return self._uploads / uuid.uuid4().hex

    def stage_file(self, source: Path) -> Path:
        """Copy a local file into the staging area, leaving the source alone."""
        target = self._staging_path()
        shutil.copyfile(source, target)
        logger.debug("Staged %s as %s", source, target.name)
        return target

    def stage_stream(self, stream: BinaryIO) -> Path:
        """Write an open binary stream into the staging area in chunks."""
        target = self._staging_path()
        with open(target, "wb") as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
        return target

    def archive(self, staged_path: Path, kind: MediaKind, file_name: str) -> Path:
        """
        Move a staged file into its kind partition under originais/.

        Args:
            staged_path: File in the staging area
            kind: Media kind (selects the partition)
            file_name: Name the archived copy gets (the user's file name)

        Returns:
            Path of the archived original
        """
        target = self.archive_dir(kind) / Path(file_name).name
        shutil.move(str(staged_path), str(target))
        logger.debug("Archived original %s -> %s", staged_path.name, target)
        return target

    def target_keys(self, kind: MediaKind, file_name: str) -> List[str]:
        """
        Local files a request for file_name writes, as sorted lock keys.

        The output key ignores the extension: 'a.docx' and 'a.pdf' both
        end up as documentos/a.pdf.
        """
        name = Path(file_name).name
        return sorted({
            str(self.output_dir(kind) / Path(name).stem),
            str(self.archive_dir(kind) / name),
        })

    @asynccontextmanager
    async def claim(self, kind: MediaKind, file_name: str) -> AsyncIterator[None]:
        """
        Exclusive use of the local output and archive paths of a file name.

        Held from conversion until the local artifacts are uploaded (and
        purged), so two requests for the same name never read each
        other's files. Keys are taken in sorted order.
        """
        async with AsyncExitStack() as stack:
            for key in self.target_keys(kind, file_name):
                await stack.enter_async_context(self._claims.hold(key))
            yield

    def discard(self, *paths: Optional[Path]) -> None:
        """Best-effort removal of local artifacts."""
        for path in paths:
            if path is None:
                continue
            try:
                Path(path).unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
