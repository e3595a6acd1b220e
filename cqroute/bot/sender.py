"""
Sender - Outbound calls to the CQHTTP API server.
"""

from typing import Dict, Any, Optional
import aiohttp

from cqroute.infra.logger import get_logger
from cqroute.infra.exceptions import SenderError


logger = get_logger(__name__)


class Sender:
    """
    Thin client for the CQHTTP HTTP API.

    Each call is a single POST to ``{server}/{action}``; failures raise
    ``SenderError`` and are not retried.
    """

    def __init__(
        self,
        server: str,
        token: str = "",
        timeout: float = 10.0
    ):
        self.server = server.rstrip("/")
        self.token = token
        self.timeout = timeout

        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Token {self.token}"
            self._session = aiohttp.ClientSession(headers=headers)
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def get(self, action: str, **params) -> Any:
        """
        Call an API action and return its ``data`` field.

        Raises:
            SenderError: On transport errors, HTTP errors or a non-zero retcode
        """
        if not self.server:
            raise SenderError("No API server configured", action=action)

        session = await self._get_session()
        logger.debug(f"Calling {action} with {params}")

        try:
            async with session.post(
                f"{self.server}/{action}",
                json=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise SenderError(
                        f"API error {response.status}: {error_text}",
                        action=action
                    )
                data: Dict[str, Any] = await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"API call {action} failed: {e}")
            raise SenderError(f"API call failed: {e}", action=action)

        retcode = data.get("retcode", 0)
        if retcode != 0:
            raise SenderError(
                f"API {action} returned retcode {retcode}",
                action=action,
                retcode=retcode
            )
        return data.get("data")

    async def send_private_msg(self, user_id: int, message: str) -> Optional[int]:
        data = await self.get("send_private_msg", user_id=user_id, message=message)
        return data and data.get("message_id")

    async def send_group_msg(self, group_id: int, message: str) -> Optional[int]:
        data = await self.get("send_group_msg", group_id=group_id, message=message)
        return data and data.get("message_id")

    async def send_discuss_msg(self, discuss_id: int, message: str) -> Optional[int]:
        data = await self.get("send_discuss_msg", discuss_id=discuss_id, message=message)
        return data and data.get("message_id")
