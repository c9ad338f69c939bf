"""
Classifier Service - Single Responsibility: map file names to media kinds.

Pure function of the lower-cased extension.
"""
from pathlib import PurePosixPath
from typing import Dict

from ..models import MediaKind


IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".avi"})
AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".flac"})
TEXT_DOCUMENT_EXTENSIONS = frozenset({".docx", ".txt"})
PDF_EXTENSIONS = frozenset({".pdf"})


def _build_table() -> Dict[str, MediaKind]:
    table: Dict[str, MediaKind] = {}
    for extensions, kind in (
        (IMAGE_EXTENSIONS, MediaKind.IMAGE),
        (VIDEO_EXTENSIONS, MediaKind.VIDEO),
        (AUDIO_EXTENSIONS, MediaKind.AUDIO),
        (TEXT_DOCUMENT_EXTENSIONS, MediaKind.TEXT_DOCUMENT),
        (PDF_EXTENSIONS, MediaKind.PDF_DOCUMENT),
    ):
        for ext in extensions:
            table[ext] = kind
    return table


_KIND_BY_EXTENSION = _build_table()


def extension_of(file_name: str) -> str:
    """Lower-cased extension including the dot ('' when there is none)."""
    # Windows-style names come through multipart uploads too
    name = (file_name or "").replace("\\", "/")
    return PurePosixPath(name).suffix.lower()


def classify(file_name: str) -> MediaKind:
    """
    Classify a file by its extension.

    Args:
        file_name: File name or path (only the extension is used)

    Returns:
        MediaKind, GENERIC for anything unknown
    """
    return _KIND_BY_EXTENSION.get(extension_of(file_name), MediaKind.GENERIC)


class TypeClassifier:
    """Injectable wrapper around classify()."""

    @staticmethod
    def classify(file_name: str) -> MediaKind:
        return classify(file_name)
