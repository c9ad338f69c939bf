"""
Folder Service - Single Responsibility: make sure remote folders exist.

Get-or-create against MEGA. The store has no atomic create-if-absent, so
every path segment is looked up and created under its own lock, and the
lookup is repeated once the lock is held. A create that fails while the
folder is visible afterwards counts as success.
"""
import logging
from typing import Any, Optional

from ..errors import ProvisionError, describe_exception
from ..models import FolderState, RemoteFolder
from ..utils.locks import KeyedLock

logger = logging.getLogger(__name__)


def normalize_remote_path(path: Optional[str]) -> str:
    """'/Videos//2026/' -> 'Videos/2026'; root variants -> ''."""
    value = (path or "").replace("\\", "/").strip()
    parts = [part for part in value.split("/") if part and part != "."]
    return "/".join(parts)


def _is_not_found(exc: BaseException) -> bool:
    if isinstance(exc, (FileNotFoundError, KeyError)):
        return True
    return "not found" in str(exc).lower()


class RemoteFolderProvisioner:
    """
    Resolves remote folders, creating missing ones.

    One instance is shared by all requests of a pipeline so that concurrent
    requests targeting the same new folder are serialized.

    Usage:
        provisioner = RemoteFolderProvisioner()
        folder = await provisioner.ensure_folder(client, "Videos/2026")
    """

    def __init__(self, locks: Optional[KeyedLock] = None):
        self._locks = locks or KeyedLock()

    async def ensure_folder(self, session: Any, path: Optional[str]) -> RemoteFolder:
        """
        Get or create a folder path.

        Args:
            session: Authenticated MEGA client
            path: Forward-slash folder path ('' or '/' for root)

        Returns:
            RemoteFolder in state CONFIRMED (existed) or CREATED

        Raises:
            ProvisionError: lookup failed for a reason other than absence,
                or creation failed and the folder is still missing
        """
        path = normalize_remote_path(path)

        if not path:
            return RemoteFolder(path="", handle=await self._root_handle(session), state=FolderState.CONFIRMED)

        node = await self._lookup(session, path)
        if node:
            logger.debug("Folder already exists: /%s (handle: %s)", path, node.handle)
            return RemoteFolder(path=path, handle=node.handle, state=FolderState.CONFIRMED)

        logger.info("Creating folder structure: /%s", path)
        created = False
        parent_handle = await self._root_handle(session)
        current_path = ""

        for part in path.split("/"):
            current_path = f"{current_path}/{part}" if current_path else part
            async with self._locks.hold(current_path):
                node = await self._lookup(session, current_path)
                if node is None:
                    node = await self._create(session, part, parent_handle, current_path)
                    created = True
            parent_handle = node.handle

        state = FolderState.CREATED if created else FolderState.CONFIRMED
        logger.info("Folder %s: /%s (handle: %s)", state.value, path, parent_handle)
        return RemoteFolder(path=path, handle=parent_handle, state=state)

    async def _root_handle(self, session: Any) -> str:
        try:
            root = await session.get_root()
        except Exception as e:
            raise ProvisionError("", describe_exception(e)) from e
        if not root:
            raise ProvisionError("", "root folder unavailable")
        return root.handle

    async def _lookup(self, session: Any, path: str) -> Optional[Any]:
        try:
            return await session.get(f"/{path}")
        except Exception as e:
            if _is_not_found(e):
                return None
            raise ProvisionError(path, describe_exception(e)) from e

    async def _create(self, session: Any, name: str, parent_handle: str, path: str) -> Any:
        try:
            node = await session.create_folder(name, parent_handle)
        except Exception as e:
            logger.warning("Create failed for /%s: %s", path, describe_exception(e))
            node = None
            cause = describe_exception(e)
        else:
            cause = "store returned no folder"

        if node:
            logger.info("Folder created: /%s (handle: %s)", path, node.handle)
            return node

        # Someone else may have won the race outside this process
        existing = await self._lookup(session, path)
        if existing:
            return existing
        raise ProvisionError(path, cause)
