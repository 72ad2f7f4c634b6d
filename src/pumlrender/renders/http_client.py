"""One HTTP request/response cycle against a PlantUML server."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from pumlrender.constants import (
    DIAGRAM_ERROR_HEADER,
    ERROR_TRUNCATION_CHARS,
    HttpMethod,
)
from pumlrender.diagrams.model import Diagram
from pumlrender.renders.errors import RenderHTTPError
from pumlrender.urls import make_plantuml_url

logger = logging.getLogger(__name__)


def _request_url(
    method: HttpMethod,
    server: str,
    diagram: Diagram,
    fmt: str,
    index: int,
) -> str:
    if method is HttpMethod.GET:
        return make_plantuml_url(server, diagram, fmt, index)
    return f"{server.rstrip('/')}/{fmt}/{index}"


def _response_message(response: httpx.Response) -> str:
    header = response.headers.get(DIAGRAM_ERROR_HEADER)
    if header:
        line = response.headers.get("X-PlantUML-Diagram-Error-Line")
        return f"{header} (line {line})" if line else header
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


async def http_render(
    client: httpx.AsyncClient,
    method: HttpMethod,
    server: str,
    diagram: Diagram,
    fmt: str,
    index: int,
    save_path: Path | None = None,
) -> bytes:
    """Render page *index* of *diagram*; optionally write it to disk.

    Raises RenderHTTPError with ``response_error=True`` when the server
    answers with a non-2xx status, ``False`` when it can't be reached.
    """
    url = _request_url(method, server, diagram, fmt, index)
    try:
        if method is HttpMethod.POST:
            response = await client.post(
                url,
                content=diagram.content.encode("utf-8"),
                headers={"Content-Type": "text/plain; charset=utf-8"},
            )
        else:
            response = await client.get(url)
    except httpx.TimeoutException as exc:
        raise RenderHTTPError(
            f"Request to {server} timed out", response_error=False
        ) from exc
    except httpx.TransportError as exc:
        raise RenderHTTPError(
            f"Cannot reach {server}: {exc}", response_error=False
        ) from exc

    if not response.is_success:
        message = _response_message(response)
        logger.warning(
            "event=render_rejected method=%s server=%s status=%d error=%s",
            method,
            server,
            response.status_code,
            message[:ERROR_TRUNCATION_CHARS],
        )
        raise RenderHTTPError(
            message,
            response.content,
            response_error=True,
            status_code=response.status_code,
        )

    body = response.content
    if save_path is not None:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        save_path.write_bytes(body)
    return body
