"""The ``out`` step: publish the build state to the configured sinks."""
from __future__ import annotations

import logging
import time
from pathlib import Path, PurePosixPath
from typing import Callable, Mapping, Protocol, TextIO

import httpx

from cogito.gitrepo import check_git_repo_dir, collect_input_dirs, get_git_commit
from cogito.protocol import (
    DUMMY_VERSION,
    STATE_KEY,
    Environment,
    Metadata,
    Output,
    PutRequest,
    merge_and_validate_sinks,
    parse_request,
)
from cogito.sinks import GitHubCommitStatusSink, GoogleChatSink, Sinker
from ghstatus.config import ResourceConfig
from ghstatus.logging import set_redaction_terms

logger = logging.getLogger(__name__)


class Putter(Protocol):
    def load_configuration(self, raw: str, args: list[str]) -> None: ...

    def process_input_dir(self) -> None: ...

    def sinks(self) -> list[Sinker]: ...

    def output(self, out: TextIO) -> None: ...


def put(raw: str, out: TextIO, args: list[str], putter: Putter) -> None:
    """Run every sink even when one fails; report all failures together."""
    try:
        putter.load_configuration(raw, args)
        putter.process_input_dir()
        sinks = putter.sinks()
    except ValueError as exc:
        raise ValueError(f"put: {exc}") from exc

    errors: list[Exception] = []
    for sink in sinks:
        try:
            sink.send()
        except Exception as exc:
            errors.append(exc)
    if errors:
        raise RuntimeError(f"put: {multi_err_string(errors)}") from errors[0]

    putter.output(out)


def multi_err_string(errors: list[Exception]) -> str:
    if len(errors) == 1:
        return str(errors[0])
    return "multiple errors:" + "".join(f"\n\t{err}" for err in errors)


class ProdPutter:
    def __init__(
        self,
        config: ResourceConfig | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or ResourceConfig()
        self.environ = environ
        self.transport = transport
        self.sleep = sleep
        self.request: PutRequest | None = None
        self.env = Environment()
        self.input_dir = Path()
        self.git_ref = ""

    def load_configuration(self, raw: str, args: list[str]) -> None:
        self.request = parse_request(PutRequest, raw, "put")
        self.env = Environment.from_env(self.environ)
        set_redaction_terms(self.request.source.secrets() + self.request.params.secrets())
        logger.debug(
            "put.parsed_request",
            extra={
                "source": str(self.request.source),
                "params": str(self.request.params),
                "environment": repr(self.env),
                "step_args": args,
            },
        )

        if not args:
            raise ValueError("arguments: missing input directory")
        self.input_dir = Path(args[0])
        logger.debug("put.input_directory path=%s state=%s", self.input_dir, self.request.params.state)

    def process_input_dir(self) -> None:
        """Find the git repository among the inputs, if any, and read its HEAD.

        The input directory holds at most two directories: the repository and
        the directory of ``chat_message_file``. No repository means chat only.
        """
        assert self.request is not None
        params = self.request.params
        source = self.request.source

        collected = collect_input_dirs(self.input_dir)
        input_dirs = set(collected)

        if params.chat_message_file:
            msg_dir = str(PurePosixPath(params.chat_message_file).parent)
            if msg_dir in ("", "."):
                raise ValueError(
                    f"chat_message_file: wrong format: have: {params.chat_message_file}, "
                    "want: path of the form: <dir>/<file>"
                )
            if msg_dir not in input_dirs:
                raise ValueError(
                    f"put:inputs: directory for chat_message_file not found: have: {collected}, "
                    f"chat_message_file: {params.chat_message_file}"
                )
            input_dirs.discard(msg_dir)

        if not input_dirs:
            logger.debug("put.chat_only no GitHub repositories in inputs, will only send to chat")
            return
        if len(input_dirs) > 1:
            raise ValueError(
                f"put:inputs: want only directory for GitHub repo: have: {sorted(input_dirs)}, "
                f"GitHub: {source.owner}/{source.repo}"
            )

        repo_dir = self.input_dir / input_dirs.pop()
        check_git_repo_dir(repo_dir, source.github_hostname, source.owner, source.repo)
        self.git_ref = get_git_commit(repo_dir)
        logger.debug("put.git_ref sha=%s", self.git_ref)

    def sinks(self) -> list[Sinker]:
        assert self.request is not None
        names = merge_and_validate_sinks(self.request.source.sinks, self.request.params.sinks)
        supported: dict[str, Sinker] = {
            "github": GitHubCommitStatusSink(
                request=self.request,
                env=self.env,
                git_ref=self.git_ref,
                config=self.config,
                transport=self.transport,
                sleep=self.sleep,
            ),
            "gchat": GoogleChatSink(
                request=self.request,
                env=self.env,
                git_ref=self.git_ref,
                input_dir=self.input_dir,
                timeout=self.config.chat_timeout,
                transport=self.transport,
            ),
        }
        return [supported[name] for name in names]

    def output(self, out: TextIO) -> None:
        assert self.request is not None
        output = Output(
            version=DUMMY_VERSION,
            metadata=[Metadata(name=STATE_KEY, value=self.request.params.state)],
        )
        out.write(output.model_dump_json() + "\n")
        logger.debug("put.success output=%s", output.model_dump_json())
