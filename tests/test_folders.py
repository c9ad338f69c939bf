"""Tests for remote folder get-or-create."""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from mediaingest.errors import ProvisionError
from mediaingest.models import FolderState
from mediaingest.services.folders import RemoteFolderProvisioner, normalize_remote_path


def test_normalize_remote_path():
    assert normalize_remote_path(None) == ""
    assert normalize_remote_path("/") == ""
    assert normalize_remote_path(".") == ""
    assert normalize_remote_path("/Videos//2026/") == "Videos/2026"
    assert normalize_remote_path("Fotos\\Ferias") == "Fotos/Ferias"


class TestEnsureFolder:
    @pytest.mark.asyncio
    async def test_root_is_confirmed(self, mega_client):
        folder = await RemoteFolderProvisioner().ensure_folder(mega_client, "/")

        assert folder.state == FolderState.CONFIRMED
        assert folder.handle == "root"
        assert mega_client.created == []

    @pytest.mark.asyncio
    async def test_creates_missing_segments(self, mega_client):
        mega_client.folders["Fotos"] = "existing-fotos"

        folder = await RemoteFolderProvisioner().ensure_folder(mega_client, "/Fotos/2026/Ferias")

        assert folder.state == FolderState.CREATED
        assert folder.path == "Fotos/2026/Ferias"
        assert mega_client.created == ["Fotos/2026", "Fotos/2026/Ferias"]
        assert folder.handle == mega_client.folders["Fotos/2026/Ferias"]

    @pytest.mark.asyncio
    async def test_idempotent(self, mega_client):
        provisioner = RemoteFolderProvisioner()

        first = await provisioner.ensure_folder(mega_client, "Videos")
        second = await provisioner.ensure_folder(mega_client, "Videos")
        third = await provisioner.ensure_folder(mega_client, "/Videos/")

        assert first.state == FolderState.CREATED
        assert second.state == FolderState.CONFIRMED
        assert first.handle == second.handle == third.handle
        assert mega_client.created == ["Videos"]

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_create_once(self, mega_client):
        provisioner = RemoteFolderProvisioner()

        results = await asyncio.gather(*[
            provisioner.ensure_folder(mega_client, "Shared/New") for _ in range(5)
        ])

        assert mega_client.created == ["Shared", "Shared/New"]
        assert len({folder.handle for folder in results}) == 1
        assert all(folder.ready for folder in results)

    @pytest.mark.asyncio
    async def test_concurrent_siblings_share_parent(self, mega_client):
        provisioner = RemoteFolderProvisioner()

        await asyncio.gather(
            provisioner.ensure_folder(mega_client, "Parent/a"),
            provisioner.ensure_folder(mega_client, "Parent/b"),
        )

        assert mega_client.created.count("Parent") == 1
        assert sorted(mega_client.created) == ["Parent", "Parent/a", "Parent/b"]

    @pytest.mark.asyncio
    async def test_locks_are_released(self, mega_client):
        provisioner = RemoteFolderProvisioner()

        await provisioner.ensure_folder(mega_client, "A/B")

        assert len(provisioner._locks) == 0


class TestProvisionErrors:
    @pytest.fixture
    def client(self):
        client = Mock()
        client.get = AsyncMock(return_value=None)
        client.get_root = AsyncMock(return_value=Mock(handle="root_handle"))
        client.create_folder = AsyncMock(return_value=Mock(handle="folder_handle"))
        return client

    @pytest.mark.asyncio
    async def test_lookup_error_raises(self, client):
        client.get.side_effect = PermissionError("EACCES (-11)")

        with pytest.raises(ProvisionError, match="EACCES"):
            await RemoteFolderProvisioner().ensure_folder(client, "Private")

        client.create_folder.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_found_exception_means_absent(self, client):
        client.get.side_effect = [RuntimeError("not found"), RuntimeError("not found")]

        folder = await RemoteFolderProvisioner().ensure_folder(client, "Docs")

        assert folder.state == FolderState.CREATED
        client.create_folder.assert_awaited_once_with("Docs", "root_handle")

    @pytest.mark.asyncio
    async def test_create_failure_raises_without_retry(self, client):
        client.create_folder.side_effect = RuntimeError("EOVERQUOTA")

        with pytest.raises(ProvisionError, match="EOVERQUOTA"):
            await RemoteFolderProvisioner().ensure_folder(client, "Docs")

        assert client.create_folder.await_count == 1

    @pytest.mark.asyncio
    async def test_create_returning_nothing_raises(self, client):
        client.create_folder.return_value = None

        with pytest.raises(ProvisionError, match="no folder"):
            await RemoteFolderProvisioner().ensure_folder(client, "Docs")

    @pytest.mark.asyncio
    async def test_already_exists_on_create_is_success(self, client):
        # absent on both lookups, then visible right after the failed create
        client.get.side_effect = [None, None, SimpleNamespace(handle="raced")]
        client.create_folder.side_effect = RuntimeError("EEXIST")

        folder = await RemoteFolderProvisioner().ensure_folder(client, "Docs")

        assert folder.ready
        assert folder.handle == "raced"

    @pytest.mark.asyncio
    async def test_root_unavailable(self, client):
        client.get_root.return_value = None

        with pytest.raises(ProvisionError, match="root folder unavailable"):
            await RemoteFolderProvisioner().ensure_folder(client, "")
