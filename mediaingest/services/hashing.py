"""BLAKE3 fingerprint of archived originals."""
import asyncio
from functools import partial
from pathlib import Path

from blake3 import blake3

CHUNK_SIZE = 1024 * 1024


def _digest(path: Path, chunk_size: int) -> str:
    hasher = blake3()
    with open(path, "rb") as f:
        for chunk in iter(partial(f.read, chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


async def blake3_file(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    """Hex BLAKE3 digest of a file, computed off the event loop."""
    return await asyncio.to_thread(_digest, Path(path), chunk_size)
