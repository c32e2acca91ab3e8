"""The ``in`` step. Echoes back the requested version; fetches nothing."""
from __future__ import annotations

import logging
from typing import TextIO

from cogito.protocol import GetRequest, Output, parse_request

logger = logging.getLogger(__name__)


def get(raw: str, out: TextIO, args: list[str]) -> None:
    request: GetRequest = parse_request(GetRequest, raw, "get")
    logger.debug(
        "get.started",
        extra={"source": str(request.source), "version": repr(request.version), "step_args": args},
    )

    if not request.version.ref:
        raise ValueError("get: empty 'version' field")
    if not args:
        raise ValueError("get: arguments: missing output directory")
    logger.debug("get.output_directory path=%s", args[0])

    output = Output(version=request.version)
    out.write(output.model_dump_json() + "\n")
    logger.debug("get.success output=%s", output.model_dump_json())
