"""Tests for error classification and normalization."""

from __future__ import annotations

import httpx

from pumlrender.renders.errors import (
    ConfigurationError,
    ErrorClass,
    ExportError,
    ProcessError,
    RenderHTTPError,
    classify_error,
    parse_error,
)


def _network_error(cause: Exception) -> RenderHTTPError:
    try:
        raise RenderHTTPError("down", response_error=False) from cause
    except RenderHTTPError as exc:
        return exc


# ── classify_error ───────────────────────────────────────────


def test_configuration() -> None:
    assert (
        classify_error(ConfigurationError("no server"))
        == ErrorClass.CONFIGURATION
    )


def test_response_error_is_protocol_rejection() -> None:
    err = RenderHTTPError("nope", response_error=True, status_code=405)
    assert classify_error(err) == ErrorClass.PROTOCOL_REJECTION


def test_connect_error_is_network() -> None:
    err = _network_error(httpx.ConnectError("refused"))
    assert classify_error(err) == ErrorClass.NETWORK


def test_timeout_cause_is_timeout() -> None:
    err = _network_error(httpx.ReadTimeout("slow"))
    assert classify_error(err) == ErrorClass.TIMEOUT


def test_process_error() -> None:
    assert classify_error(ProcessError("boom", returncode=1)) == (
        ErrorClass.PROCESS
    )


def test_builtin_timeout() -> None:
    assert classify_error(TimeoutError()) == ErrorClass.TIMEOUT


def test_unknown() -> None:
    assert classify_error(ValueError("odd")) == ErrorClass.UNKNOWN


# ── parse_error ──────────────────────────────────────────────


def test_export_error_passes_through() -> None:
    err = ExportError("bad syntax", b"<svg/>")
    assert parse_error(err) == [err]
    assert parse_error(err)[0].output == b"<svg/>"


def test_plain_exception_wrapped() -> None:
    parsed = parse_error(RuntimeError("kaput"))
    assert parsed[0].message == "kaput"
    assert parsed[0].output == b""


def test_none_gets_generic_message() -> None:
    assert parse_error(None)[0].message == "Unknown error"


def test_exception_group_flattened() -> None:
    group = ExceptionGroup(
        "pages", [ExportError("p1"), RuntimeError("p2")]
    )
    assert [e.message for e in parse_error(group)] == ["p1", "p2"]
