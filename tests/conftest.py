"""Shared fixtures: in-memory MEGA client, workspace, fake external tools."""
import asyncio
from pathlib import Path
from types import SimpleNamespace

import pytest

from mediaingest.services.session import MegaSessionFactory
from mediaingest.services.workspace import LocalWorkspace
from mediaingest.utils.process import ProcessResult


class FakeMegaClient:
    """In-memory stand-in for megapy.MegaClient (folders by path)."""

    def __init__(self, fail_uploads=(), unconfirmed_uploads=()):
        self.folders = {"": "root"}
        self.created = []
        self.uploads = []
        self.contents = {}
        self.fail_uploads = set(fail_uploads)
        self.unconfirmed_uploads = set(unconfirmed_uploads)
        self.started = False
        self.closed = False

    def _path_of(self, handle):
        for path, value in self.folders.items():
            if value == handle:
                return path
        raise KeyError(handle)

    async def start(self):
        self.started = True

    async def close(self):
        self.closed = True

    async def get_root(self):
        return SimpleNamespace(handle="root")

    async def get(self, path):
        await asyncio.sleep(0)
        handle = self.folders.get(path.strip("/"))
        return SimpleNamespace(handle=handle) if handle else None

    async def create_folder(self, name, parent_handle):
        # Yield so that concurrent creators interleave like real network calls
        await asyncio.sleep(0)
        parent = self._path_of(parent_handle)
        path = f"{parent}/{name}" if parent else name
        self.created.append(path)
        handle = f"folder-{len(self.created)}"
        self.folders[path] = handle
        return SimpleNamespace(handle=handle)

    async def upload(self, path, dest_folder=None, name=None, progress_callback=None):
        await asyncio.sleep(0)
        assert Path(path).is_file()
        if name in self.fail_uploads:
            raise ConnectionError("connection reset by peer")
        if name in self.unconfirmed_uploads:
            return None
        folder = self._path_of(dest_folder)
        self.uploads.append((folder, name))
        self.contents[f"{folder}/{name}" if folder else name] = Path(path).read_bytes()
        if progress_callback:
            size = Path(path).stat().st_size
            progress_callback((size, size))
        return SimpleNamespace(handle=f"file-{name}")


class FakeProcessRunner:
    """Records external tool invocations and writes their output files."""

    def __init__(self, returncode=0, stderr=""):
        self.returncode = returncode
        self.stderr = stderr
        self.calls = []

    async def __call__(self, args, timeout=None):
        args = list(args)
        self.calls.append(args)
        if self.returncode == 0:
            if "--outdir" in args:
                out_dir = Path(args[args.index("--outdir") + 1])
                source = Path(args[-1])
                (out_dir / f"{source.stem}.pdf").write_bytes(b"%PDF-1.4 fake")
            else:
                Path(args[-1]).write_bytes(b"converted")
        return ProcessResult(returncode=self.returncode, stderr=self.stderr)


@pytest.fixture
def workspace(tmp_path):
    return LocalWorkspace(tmp_path / "work").ensure()


@pytest.fixture
def mega_client():
    return FakeMegaClient()


@pytest.fixture
def session_factory(mega_client):
    def client_cls(email, password):
        client_cls.logins.append(email)
        return mega_client

    client_cls.logins = []
    factory = MegaSessionFactory(client_cls=client_cls)
    factory.logins = client_cls.logins
    return factory


@pytest.fixture
def process_runner():
    return FakeProcessRunner()
