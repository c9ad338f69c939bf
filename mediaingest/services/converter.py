"""
Conversion Service - Single Responsibility: normalize media for delivery.

Dispatch table by MediaKind:
- IMAGE          -> WebP (Pillow, quality 80, effort 6)
- VIDEO          -> WebM (ffmpeg, libvpx 500k + libvorbis 128k)
- AUDIO          -> MP3 (ffmpeg, libmp3lame 128k)
- TEXT_DOCUMENT  -> PDF (LibreOffice headless)
- PDF_DOCUMENT   -> passthrough copy
- GENERIC        -> passthrough copy

Every transform writes a new file; the source is only ever read.
"""
import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

from PIL import Image, UnidentifiedImageError

from ..errors import ConversionError, describe_exception
from ..models import ConvertedArtifact, IngestConfig, MediaAsset, MediaKind
from ..utils.process import ProcessTimeout, run_process
from .workspace import LocalWorkspace

logger = logging.getLogger(__name__)

Transform = Callable[[MediaAsset], Awaitable[ConvertedArtifact]]


def encode_webp(source: Path, target: Path, quality: int, effort: int) -> None:
    """Re-encode an image as lossy WebP (single pass)."""
    with Image.open(source) as img:
        img.load()
        if img.mode not in ("RGB", "RGBA"):
            has_alpha = "A" in img.getbands() or "transparency" in img.info
            img = img.convert("RGBA" if has_alpha else "RGB")
        img.save(target, "WEBP", quality=quality, method=effort)


class ConversionEngine:
    """
    Converts staged media into the delivery format for its kind.

    Usage:
        engine = ConversionEngine(workspace, config)
        artifact = await engine.convert(asset)
    """

    def __init__(
        self,
        workspace: LocalWorkspace,
        config: Optional[IngestConfig] = None,
        process_runner=run_process,
    ):
        """
        Initialize conversion engine.

        Args:
            workspace: Local workspace providing output directories
            config: Ingestion configuration (codecs, bitrates, binaries)
            process_runner: Coroutine used to run external tools
        """
        self._workspace = workspace
        self._config = config or IngestConfig()
        self._run_process = process_runner
        self._transforms: Dict[MediaKind, Transform] = {
            MediaKind.IMAGE: self._convert_image,
            MediaKind.VIDEO: self._convert_video,
            MediaKind.AUDIO: self._convert_audio,
            MediaKind.TEXT_DOCUMENT: self._convert_document,
            MediaKind.PDF_DOCUMENT: self._passthrough,
            MediaKind.GENERIC: self._passthrough,
        }

    async def convert(self, asset: MediaAsset) -> ConvertedArtifact:
        """
        Produce the final artifact for an asset.

        Raises:
            ConversionError: transform failed (output may be partial)
        """
        transform = self._transforms[asset.kind]
        logger.info("Converting %s (%s)", asset.original_name, asset.kind.value)
        artifact = await transform(asset)
        logger.info("Converted %s -> %s", asset.original_name, artifact.path.name)
        return artifact

    def _output_path(self, asset: MediaAsset, suffix: Optional[str] = None) -> Path:
        name = Path(asset.original_name).name
        if suffix is not None:
            name = Path(name).stem + suffix
        target = self._workspace.output_dir(asset.kind) / name
        if target.resolve() == Path(asset.local_path).resolve():
            raise ConversionError(asset.kind, f"output would overwrite source: {target}")
        return target

    async def _convert_image(self, asset: MediaAsset) -> ConvertedArtifact:
        target = self._output_path(asset, ".webp")
        try:
            await asyncio.to_thread(
                encode_webp,
                asset.local_path,
                target,
                self._config.image_quality,
                self._config.image_effort,
            )
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ConversionError(asset.kind, describe_exception(e), target) from e
        return ConvertedArtifact(path=target, kind=asset.kind)

    async def _convert_video(self, asset: MediaAsset) -> ConvertedArtifact:
        target = self._output_path(asset, ".webm")
        cfg = self._config
        await self._run(asset.kind, target, [
            cfg.ffmpeg_binary, "-y", "-i", str(asset.local_path),
            "-c:v", cfg.video_codec, "-b:v", cfg.video_bitrate,
            "-c:a", cfg.audio_codec_video, "-b:a", cfg.audio_bitrate,
            str(target),
        ])
        return ConvertedArtifact(path=target, kind=asset.kind)

    async def _convert_audio(self, asset: MediaAsset) -> ConvertedArtifact:
        target = self._output_path(asset, ".mp3")
        cfg = self._config
        await self._run(asset.kind, target, [
            cfg.ffmpeg_binary, "-y", "-i", str(asset.local_path),
            "-vn", "-c:a", cfg.audio_codec, "-b:a", cfg.audio_bitrate,
            str(target),
        ])
        return ConvertedArtifact(path=target, kind=asset.kind)

    async def _convert_document(self, asset: MediaAsset) -> ConvertedArtifact:
        target = self._output_path(asset, ".pdf")
        with tempfile.TemporaryDirectory(prefix="mediaingest-") as tmp:
            work_dir = Path(tmp)
            # LibreOffice picks its import filter from the extension,
            # staged files have none
            source_copy = work_dir / Path(asset.original_name).name
            try:
                await asyncio.to_thread(shutil.copyfile, asset.local_path, source_copy)
            except OSError as e:
                raise ConversionError(asset.kind, describe_exception(e), target) from e

            await self._run(asset.kind, target, [
                self._config.soffice_binary,
                f"-env:UserInstallation={(work_dir / 'profile').as_uri()}",
                "--headless",
                "--convert-to", "pdf",
                "--outdir", str(work_dir),
                str(source_copy),
            ])

            produced = work_dir / f"{source_copy.stem}.pdf"
            if not produced.exists():
                raise ConversionError(asset.kind, "converter produced no PDF", target)
            try:
                await asyncio.to_thread(shutil.move, str(produced), str(target))
            except OSError as e:
                raise ConversionError(asset.kind, describe_exception(e), target) from e
        return ConvertedArtifact(path=target, kind=asset.kind)

    async def _passthrough(self, asset: MediaAsset) -> ConvertedArtifact:
        target = self._output_path(asset)
        try:
            await asyncio.to_thread(shutil.copyfile, asset.local_path, target)
        except OSError as e:
            raise ConversionError(asset.kind, describe_exception(e), target) from e
        return ConvertedArtifact(path=target, kind=asset.kind, converted=False)

    async def _run(self, kind: MediaKind, target: Path, args: List[str]) -> None:
        try:
            result = await self._run_process(args, timeout=self._config.conversion_timeout)
        except FileNotFoundError as e:
            raise ConversionError(kind, f"{args[0]} not found", target) from e
        except ProcessTimeout as e:
            raise ConversionError(kind, str(e), target) from e
        except OSError as e:
            raise ConversionError(kind, f"could not start {args[0]}: {describe_exception(e)}", target) from e

        if not result.ok:
            logger.error("%s failed for %s: %s", args[0], kind.value, result.last_error_line)
            raise ConversionError(kind, result.last_error_line, target)
