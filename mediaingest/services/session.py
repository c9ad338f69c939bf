"""
Session Service - Single Responsibility: open authenticated MEGA sessions.

One fresh session per request. Pooling can be added behind the same
interface (open/close).
"""
import logging
from typing import Any

from megapy import MegaClient

from ..errors import AuthError, describe_exception
from ..models import Credentials

logger = logging.getLogger(__name__)


class MegaSessionFactory:
    """Logs into MEGA with the request owner's credentials."""

    def __init__(self, client_cls=MegaClient):
        self._client_cls = client_cls

    async def open(self, credentials: Credentials) -> Any:
        """
        Open a session.

        Raises:
            AuthError: login failed
        """
        logger.debug("Logging into MEGA as %s", credentials.email)
        try:
            client = self._client_cls(credentials.email, credentials.password)
            await client.start()
        except Exception as e:
            logger.error("MEGA login failed for %s: %s", credentials.email, describe_exception(e))
            raise AuthError(f"MEGA login failed: {describe_exception(e)}") from e
        logger.info("Logged into MEGA as %s", credentials.email)
        return client

    async def close(self, session: Any) -> None:
        close = getattr(session, "close", None)
        if not callable(close):
            return
        try:
            await close()
        except Exception as e:
            logger.warning("Error closing MEGA session: %s", describe_exception(e))
