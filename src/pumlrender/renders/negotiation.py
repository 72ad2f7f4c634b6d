"""Per-address memory of whether a server accepts POST.

Some PlantUML servers (the public one among them) reject POST outright.
The first response-level rejection downgrades that address to GET for
the rest of the session; an address that has served a POST once is
never downgraded. Both transitions are one-way.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar
from urllib.parse import urlsplit, urlunsplit

from pumlrender.renders.errors import RenderHTTPError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MethodSupport(Enum):
    UNKNOWN = "unknown"
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"


def normalize_address(address: str) -> str:
    """Lower-case scheme and host, drop trailing slashes."""
    parts = urlsplit(address.strip())
    if not parts.scheme:
        return address.strip().rstrip("/")
    return urlunsplit((
        parts.scheme.lower(),
        parts.netloc.lower(),
        parts.path.rstrip("/"),
        parts.query,
        "",
    ))


class ProtocolNegotiator:
    """Session-wide address → MethodSupport table.

    Mutated only from coroutines on the session's event loop, so no
    locking is needed.
    """

    def __init__(self) -> None:
        self._support: dict[str, MethodSupport] = {}

    def support(self, address: str) -> MethodSupport:
        return self._support.get(
            normalize_address(address), MethodSupport.UNKNOWN
        )

    def mark_supported(self, address: str) -> None:
        key = normalize_address(address)
        if self._support.get(key) is MethodSupport.UNSUPPORTED:
            return
        self._support[key] = MethodSupport.SUPPORTED

    def mark_unsupported(self, address: str) -> bool:
        """Downgrade *address*. Refused (False) once it is confirmed."""
        key = normalize_address(address)
        current = self._support.get(key, MethodSupport.UNKNOWN)
        if current is MethodSupport.SUPPORTED:
            return False
        if current is MethodSupport.UNKNOWN:
            logger.info("event=post_unsupported server=%s", key)
        self._support[key] = MethodSupport.UNSUPPORTED
        return True

    async def negotiate(
        self,
        address: str,
        preferred: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
    ) -> T:
        """Run *preferred* unless *address* is known not to take it.

        A response-level rejection from a not-yet-confirmed address
        downgrades it and retries once with *fallback*; the caller
        never sees that first error. Anything else propagates.
        """
        if self.support(address) is MethodSupport.UNSUPPORTED:
            return await fallback()
        try:
            result = await preferred()
        except RenderHTTPError as exc:
            if not exc.response_error or not self.mark_unsupported(
                address
            ):
                raise
            logger.debug(
                "event=fallback_retry server=%s status=%s",
                address,
                exc.status_code,
            )
            return await fallback()
        self.mark_supported(address)
        return result
