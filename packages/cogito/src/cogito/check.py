"""The ``check`` step. There is nothing to discover: always one dummy version."""
from __future__ import annotations

import json
import logging
from typing import TextIO

from cogito.protocol import DUMMY_VERSION, CheckRequest, parse_request

logger = logging.getLogger(__name__)


def check(raw: str, out: TextIO, args: list[str]) -> None:
    request: CheckRequest = parse_request(CheckRequest, raw, "check")
    logger.debug(
        "check.started",
        extra={"source": str(request.source), "version": repr(request.version), "step_args": args},
    )

    versions = [DUMMY_VERSION.model_dump()]
    out.write(json.dumps(versions) + "\n")
    logger.debug("check.success output=%s", versions)
