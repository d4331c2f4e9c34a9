"""
At most one in-flight request per purpose.

Each ``CancellableRequest`` hands out an increasing epoch per request. Issuing
a new request cancels the previous one, and a response is only delivered when
its request is still the current epoch and was not cancelled. Late responses
from superseded requests are dropped silently, so callers never apply results
out of order.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from services.common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RequestHandle:
    epoch: int
    cancelled: bool = False
    task: Optional["asyncio.Future[Any]"] = field(default=None, repr=False)


class CancellableRequest:
    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client
        self._epoch = 0
        self._current: Optional[RequestHandle] = None

    @property
    def epoch(self) -> int:
        return self._epoch

    def _is_current(self, handle: RequestHandle) -> bool:
        return handle.epoch == self._epoch and not handle.cancelled

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self.http_client.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def request(
        self,
        method: str,
        url: str,
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_cancel: Optional[Callable[[], None]] = None,
        **kwargs: Any,
    ) -> Optional[Any]:
        """
        Send a request, cancelling whichever one is in flight.

        Returns:
            The decoded JSON body, or None when the request was cancelled or
            superseded before its response could be applied

        Raises:
            httpx.HTTPError: If this request is still current and fails
        """
        self.cancel_current_request()
        self._epoch += 1
        handle = RequestHandle(epoch=self._epoch)
        handle.task = asyncio.ensure_future(self._send(method, url, **kwargs))
        self._current = handle

        try:
            data = await handle.task
        except asyncio.CancelledError:
            if not handle.cancelled:
                # The caller itself was cancelled
                raise
            logger.debug(f"Request {handle.epoch} was cancelled")
            if on_cancel:
                on_cancel()
            return None
        except Exception as e:
            if handle.cancelled:
                if on_cancel:
                    on_cancel()
                return None
            if not self._is_current(handle):
                logger.debug(f"Request {handle.epoch} is stale, ignoring error")
                return None
            logger.warning(f"Request {handle.epoch} failed: {e}", url=url)
            if on_error:
                on_error(e)
            raise

        if handle.cancelled:
            if on_cancel:
                on_cancel()
            return None
        if not self._is_current(handle):
            logger.debug(f"Request {handle.epoch} is stale, ignoring response")
            return None
        if on_success:
            on_success(data)
        return data

    def cancel_current_request(self) -> None:
        handle = self._current
        if handle is None or handle.cancelled:
            return
        handle.cancelled = True
        if handle.task is not None and not handle.task.done():
            handle.task.cancel()
