"""Tests for the conversion engine."""
import pytest
from PIL import Image

from mediaingest.errors import ConversionError
from mediaingest.models import IngestConfig, MediaAsset, MediaKind
from mediaingest.services.converter import ConversionEngine
from mediaingest.utils.process import ProcessResult, ProcessTimeout

from conftest import FakeProcessRunner


def _stage(workspace, content=b"payload"):
    staged = workspace.uploads_dir / "3f2a9c"
    staged.write_bytes(content)
    return staged


def _stage_image(workspace, fmt="JPEG", mode="RGB"):
    staged = workspace.uploads_dir / "b81d0e"
    Image.new(mode, (32, 24), color=0).save(staged, fmt)
    return staged


class TestImageConversion:
    @pytest.mark.asyncio
    async def test_jpeg_to_webp(self, workspace):
        staged = _stage_image(workspace)
        before = staged.read_bytes()
        engine = ConversionEngine(workspace)

        artifact = await engine.convert(MediaAsset(staged, "photo.JPG", MediaKind.IMAGE))

        assert artifact.path == workspace.output_dir(MediaKind.IMAGE) / "photo.webp"
        assert artifact.converted is True
        with Image.open(artifact.path) as img:
            assert img.format == "WEBP"
        assert staged.read_bytes() == before

    @pytest.mark.asyncio
    async def test_palette_png_is_converted(self, workspace):
        staged = _stage_image(workspace, fmt="PNG", mode="P")
        engine = ConversionEngine(workspace)

        artifact = await engine.convert(MediaAsset(staged, "icon.png", MediaKind.IMAGE))

        assert artifact.path.name == "icon.webp"
        assert artifact.path.exists()

    @pytest.mark.asyncio
    async def test_corrupt_image_raises(self, workspace):
        staged = _stage(workspace, b"not an image")
        engine = ConversionEngine(workspace)

        with pytest.raises(ConversionError) as exc_info:
            await engine.convert(MediaAsset(staged, "broken.png", MediaKind.IMAGE))

        assert exc_info.value.kind == MediaKind.IMAGE
        assert staged.read_bytes() == b"not an image"


class TestProcessConversions:
    @pytest.mark.asyncio
    async def test_video_uses_fixed_codecs_and_bitrates(self, workspace, process_runner):
        staged = _stage(workspace)
        engine = ConversionEngine(workspace, process_runner=process_runner)

        artifact = await engine.convert(MediaAsset(staged, "clip.mp4", MediaKind.VIDEO))

        assert artifact.path == workspace.output_dir(MediaKind.VIDEO) / "clip.webm"
        args = process_runner.calls[0]
        assert args[:4] == ["ffmpeg", "-y", "-i", str(staged)]
        assert args[args.index("-c:v") + 1] == "libvpx"
        assert args[args.index("-b:v") + 1] == "500k"
        assert args[args.index("-c:a") + 1] == "libvorbis"
        assert args[args.index("-b:a") + 1] == "128k"
        assert staged.read_bytes() == b"payload"

    @pytest.mark.asyncio
    async def test_audio_to_mp3(self, workspace, process_runner):
        staged = _stage(workspace)
        engine = ConversionEngine(workspace, process_runner=process_runner)

        artifact = await engine.convert(MediaAsset(staged, "take.WAV", MediaKind.AUDIO))

        assert artifact.path == workspace.output_dir(MediaKind.AUDIO) / "take.mp3"
        args = process_runner.calls[0]
        assert args[args.index("-c:a") + 1] == "libmp3lame"
        assert args[args.index("-b:a") + 1] == "128k"

    @pytest.mark.asyncio
    async def test_ffmpeg_failure_raises_with_output_path(self, workspace):
        staged = _stage(workspace)
        runner = FakeProcessRunner(returncode=1, stderr="Invalid data found when processing input\n")
        engine = ConversionEngine(workspace, process_runner=runner)

        with pytest.raises(ConversionError) as exc_info:
            await engine.convert(MediaAsset(staged, "clip.mov", MediaKind.VIDEO))

        error = exc_info.value
        assert error.kind == MediaKind.VIDEO
        assert "Invalid data found" in str(error)
        assert error.output_path == workspace.output_dir(MediaKind.VIDEO) / "clip.webm"

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, workspace):
        async def runner(args, timeout=None):
            raise FileNotFoundError(args[0])

        engine = ConversionEngine(workspace, IngestConfig(ffmpeg_binary="no-ffmpeg"), process_runner=runner)

        with pytest.raises(ConversionError, match="no-ffmpeg not found"):
            await engine.convert(MediaAsset(_stage(workspace), "song.flac", MediaKind.AUDIO))

    @pytest.mark.asyncio
    async def test_timeout_raises(self, workspace):
        async def runner(args, timeout=None):
            raise ProcessTimeout(f"{args[0]} timed out after {timeout:.0f}s")

        engine = ConversionEngine(workspace, IngestConfig(conversion_timeout=5), process_runner=runner)

        with pytest.raises(ConversionError, match="timed out after 5s"):
            await engine.convert(MediaAsset(_stage(workspace), "clip.avi", MediaKind.VIDEO))


class TestDocumentConversion:
    @pytest.mark.asyncio
    async def test_docx_to_pdf(self, workspace, process_runner):
        staged = _stage(workspace)
        engine = ConversionEngine(workspace, process_runner=process_runner)

        artifact = await engine.convert(MediaAsset(staged, "notes.docx", MediaKind.TEXT_DOCUMENT))

        assert artifact.path == workspace.output_dir(MediaKind.TEXT_DOCUMENT) / "notes.pdf"
        assert artifact.path.read_bytes().startswith(b"%PDF")
        args = process_runner.calls[0]
        assert args[0] == "soffice"
        assert "--headless" in args
        assert args[args.index("--convert-to") + 1] == "pdf"
        # converter sees a copy that carries the user's extension
        assert args[-1].endswith("notes.docx")
        assert staged.exists()

    @pytest.mark.asyncio
    async def test_converter_failure(self, workspace):
        runner = FakeProcessRunner(returncode=77, stderr="")
        engine = ConversionEngine(workspace, process_runner=runner)

        with pytest.raises(ConversionError) as exc_info:
            await engine.convert(MediaAsset(_stage(workspace), "notes.txt", MediaKind.TEXT_DOCUMENT))

        assert exc_info.value.kind == MediaKind.TEXT_DOCUMENT
        assert "exit status 77" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_no_pdf_produced(self, workspace):
        async def silent_runner(args, timeout=None):
            return ProcessResult(returncode=0)

        engine = ConversionEngine(workspace, process_runner=silent_runner)

        with pytest.raises(ConversionError, match="produced no PDF"):
            await engine.convert(MediaAsset(_stage(workspace), "notes.docx", MediaKind.TEXT_DOCUMENT))


class TestPassthrough:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,name", [(MediaKind.PDF_DOCUMENT, "paper.pdf"), (MediaKind.GENERIC, "data.zip")])
    async def test_passthrough_copies(self, workspace, process_runner, kind, name):
        staged = _stage(workspace)
        engine = ConversionEngine(workspace, process_runner=process_runner)

        artifact = await engine.convert(MediaAsset(staged, name, kind))

        assert artifact.path == workspace.output_dir(kind) / name
        assert artifact.converted is False
        assert artifact.path.read_bytes() == b"payload"
        assert staged.exists()
        assert process_runner.calls == []


class TestLaunchFailures:
    @pytest.mark.asyncio
    async def test_non_executable_binary_raises(self, workspace, tmp_path):
        binary = tmp_path / "ffmpeg"
        binary.write_text("#!/bin/sh\n")
        binary.chmod(0o644)
        engine = ConversionEngine(workspace, IngestConfig(ffmpeg_binary=str(binary)))

        with pytest.raises(ConversionError, match="could not start") as exc_info:
            await engine.convert(MediaAsset(_stage(workspace), "clip.mp4", MediaKind.VIDEO))

        assert exc_info.value.output_path == workspace.output_dir(MediaKind.VIDEO) / "clip.webm"

    @pytest.mark.asyncio
    async def test_launch_oserror_raises(self, workspace):
        async def runner(args, timeout=None):
            raise OSError(8, "Exec format error")

        engine = ConversionEngine(workspace, process_runner=runner)

        with pytest.raises(ConversionError, match="Exec format error"):
            await engine.convert(MediaAsset(_stage(workspace), "take.wav", MediaKind.AUDIO))

    @pytest.mark.asyncio
    async def test_unreadable_document_source_raises(self, workspace, process_runner):
        engine = ConversionEngine(workspace, process_runner=process_runner)
        missing = workspace.uploads_dir / "vanished"

        with pytest.raises(ConversionError) as exc_info:
            await engine.convert(MediaAsset(missing, "notes.docx", MediaKind.TEXT_DOCUMENT))

        assert process_runner.calls == []
        assert exc_info.value.output_path == workspace.output_dir(MediaKind.TEXT_DOCUMENT) / "notes.pdf"


def test_document_failures_are_labelled_document():
    error = ConversionError(MediaKind.TEXT_DOCUMENT, "exit status 1")

    assert str(error) == "document conversion failed: exit status 1"
    assert error.kind == MediaKind.TEXT_DOCUMENT
    assert str(ConversionError(MediaKind.VIDEO, "x")) == "video conversion failed: x"
