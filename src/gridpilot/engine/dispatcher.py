"""Response envelope helpers and exit code mapping."""

from __future__ import annotations

import sys
from typing import Any

import orjson

from gridpilot.contracts.common import (
    ErrorDetail,
    Metrics,
    ResponseEnvelope,
    Target,
)

EXIT_CODES = {
    "success": 0,
    "validation": 10,
    "conflict": 40,
    "io": 50,
    "internal": 90,
}

# First matching class wins; a code matches when it contains any marker.
EXIT_CLASS_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("conflict", ("FINGERPRINT", "CONFLICT")),
    ("validation", (
        "VALIDATION",
        "PROPOSAL_INVALID",
        "INVALID_ARGUMENT",
        "RANGE",
        "USAGE",
        "SETTINGS",
    )),
    ("io", ("ERR_IO", "FILE_EXISTS", "NOT_FOUND", "CORRUPT", "LOCK")),
)


def success_envelope(
    command: str,
    result: Any,
    *,
    target: Target | None = None,
    changes: list | None = None,
    warnings: list | None = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=True,
        command=command,
        target=target or Target(),
        result=result,
        changes=changes or [],
        warnings=warnings or [],
        metrics=Metrics(duration_ms=duration_ms),
    )


def error_envelope(
    command: str,
    code: str,
    message: str,
    *,
    target: Target | None = None,
    details: dict | None = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=False,
        command=command,
        target=target or Target(),
        errors=[ErrorDetail(code=code, message=message, details=details)],
        metrics=Metrics(duration_ms=duration_ms),
    )


def output_json(envelope: ResponseEnvelope) -> str:
    return orjson.dumps(envelope.model_dump(mode="json"), option=orjson.OPT_INDENT_2).decode()


def print_response(envelope: ResponseEnvelope) -> None:
    sys.stdout.write(output_json(envelope) + "\n")


def exit_class_for(code: str) -> str:
    """Name the exit class of an error code (``internal`` when nothing matches)."""
    code = code.upper()
    for name, markers in EXIT_CLASS_MARKERS:
        if any(marker in code for marker in markers):
            return name
    return "internal"


def exit_code_for(envelope: ResponseEnvelope) -> int:
    """Exit code for an envelope, decided by its first error."""
    if envelope.ok:
        return EXIT_CODES["success"]
    if not envelope.errors:
        return EXIT_CODES["internal"]
    return EXIT_CODES[exit_class_for(envelope.errors[0].code)]
