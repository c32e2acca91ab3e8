"""Concourse resource protocol: request and response JSON, build environment.

See https://concourse-ci.org/implementing-resource-types.html
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional
from urllib.parse import quote_plus

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from ghstatus.github.app import AppIdentity, Credentials, PersonalToken
from ghstatus.github.url import DEFAULT_HOSTNAME

BuildState = Literal["abort", "error", "failure", "pending", "success"]

STATE_KEY = "state"
DEFAULT_NOTIFY_STATES: list[BuildState] = ["abort", "error", "failure"]
SUPPORTED_SINKS = ("github", "gchat")
DEFAULT_SINKS = ["github", "gchat"]
REDACTED = "***REDACTED***"

_HOSTNAME_RE = re.compile(r"^(?P<host>[a-zA-Z0-9.-]+)(?::(?P<port>\d+))?$")


def redact(value: str) -> str:
    return REDACTED if value else value


def _secret(value: SecretStr | None) -> str:
    return value.get_secret_value() if value is not None else ""


class GitHubAppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    client_id: str = ""
    installation_id: int = 0
    private_key: SecretStr = SecretStr("")

    _identity: Optional[AppIdentity] = PrivateAttr(default=None)

    def is_zero(self) -> bool:
        return not self.client_id and not self.installation_id and not _secret(self.private_key)

    def identity(self) -> AppIdentity:
        # One instance per config, so the parsed key is cached across calls.
        if self._identity is None:
            self._identity = AppIdentity(
                client_id=self.client_id,
                installation_id=self.installation_id,
                private_key=_secret(self.private_key),
            )
        return self._identity


class Source(BaseModel):
    """The ``source:`` block of the resource configuration."""

    model_config = ConfigDict(extra="forbid")

    owner: str = ""
    repo: str = ""
    access_token: SecretStr = SecretStr("")
    github_app: GitHubAppConfig = Field(default_factory=GitHubAppConfig)
    github_hostname: str = DEFAULT_HOSTNAME
    gchat_webhook: SecretStr = SecretStr("")
    log_level: str = "info"
    # Deprecated, accepted and ignored.
    log_url: str = ""
    context_prefix: str = ""
    omit_target_url: bool = False
    chat_append_summary: bool = True
    chat_notify_on_states: list[BuildState] = Field(default_factory=lambda: list(DEFAULT_NOTIFY_STATES))
    sinks: list[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def _default_log_level(cls, value: str) -> str:
        return value or "info"

    @field_validator("github_hostname")
    @classmethod
    def _default_hostname(cls, value: str) -> str:
        return value or DEFAULT_HOSTNAME

    @field_validator("chat_notify_on_states")
    @classmethod
    def _default_notify_states(cls, value: list[BuildState]) -> list[BuildState]:
        return value or list(DEFAULT_NOTIFY_STATES)

    def validate_config(self) -> None:
        """Cross-field checks that the JSON schema alone cannot express."""
        try:
            merge_and_validate_sinks(self.sinks, None)
        except ValueError as exc:
            raise ValueError(f"source: invalid sink(s): {exc}") from None

        missing: list[str] = []
        sinks = set(self.sinks)
        if not sinks or "github" in sinks:
            has_app = not self.github_app.is_zero()
            has_token = bool(_secret(self.access_token))
            if has_app and has_token:
                raise ValueError("source: cannot specify both github_app and access_token")
            if not has_app and not has_token:
                raise ValueError("source: one of access_token or github_app must be specified")

            if not self.owner:
                missing.append("owner")
            if not self.repo:
                missing.append("repo")
            if has_app:
                if not self.github_app.client_id:
                    missing.append("github_app.client_id")
                if not self.github_app.installation_id:
                    missing.append("github_app.installation_id")
                if not _secret(self.github_app.private_key):
                    missing.append("github_app.private_key")

        if "gchat" in sinks and not _secret(self.gchat_webhook):
            missing.append("gchat_webhook")

        if missing:
            raise ValueError(f"source: missing keys: {', '.join(missing)}")

        if not _HOSTNAME_RE.match(self.github_hostname):
            raise ValueError(
                f"source: invalid github_api_hostname: {self.github_hostname}. "
                "Don't configure the schema or the path"
            )

        if not self.github_app.is_zero():
            self.github_app.identity().validate()

    def credentials(self) -> Credentials:
        token = _secret(self.access_token)
        if token:
            return PersonalToken(token)
        return self.github_app.identity()

    def secrets(self) -> list[str]:
        return [
            s
            for s in (_secret(self.access_token), _secret(self.gchat_webhook), _secret(self.github_app.private_key))
            if s
        ]

    def __str__(self) -> str:
        return "\n".join(
            [
                f"owner:                 {self.owner}",
                f"repo:                  {self.repo}",
                f"github_hostname:       {self.github_hostname}",
                f"access_token:          {redact(_secret(self.access_token))}",
                f"gchat_webhook:         {redact(_secret(self.gchat_webhook))}",
                f"github_app.client_id:        {self.github_app.client_id}",
                f"github_app.installation_id:  {self.github_app.installation_id}",
                f"github_app.private_key:      {redact(_secret(self.github_app.private_key))}",
                f"log_level:             {self.log_level}",
                f"context_prefix:        {self.context_prefix}",
                f"omit_target_url:       {str(self.omit_target_url).lower()}",
                f"chat_append_summary:   {str(self.chat_append_summary).lower()}",
                f"chat_notify_on_states: {self.chat_notify_on_states}",
                f"sinks: {self.sinks}",
            ]
        )


class Version(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ref: str = ""


DUMMY_VERSION = Version(ref="dummy")


class Metadata(BaseModel):
    name: str
    value: str


class Output(BaseModel):
    version: Version
    metadata: list[Metadata] = Field(default_factory=list)


class PutParams(BaseModel):
    """The ``params:`` block of a put step."""

    model_config = ConfigDict(extra="forbid")

    state: BuildState
    context: str = ""
    chat_message: str = ""
    chat_message_file: str = ""
    chat_append_summary: bool = True
    gchat_webhook: SecretStr = SecretStr("")
    sinks: list[str] = Field(default_factory=list)

    def secrets(self) -> list[str]:
        return [s for s in (_secret(self.gchat_webhook),) if s]

    def __str__(self) -> str:
        return "\n".join(
            [
                f"state:               {self.state}",
                f"context:             {self.context}",
                f"chat_message:        {self.chat_message}",
                f"chat_message_file:   {self.chat_message_file}",
                f"chat_append_summary: {str(self.chat_append_summary).lower()}",
                f"gchat_webhook:       {redact(_secret(self.gchat_webhook))}",
                f"sinks:               {self.sinks}",
            ]
        )


class CheckRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: Source
    version: Optional[Version] = None


class GetRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: Source
    version: Version = Field(default_factory=Version)


class PutRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: Source
    params: PutParams

    @model_validator(mode="before")
    @classmethod
    def _inherit_chat_append_summary(cls, data: Any) -> Any:
        # params.chat_append_summary defaults to the source value.
        if isinstance(data, dict):
            source = data.get("source")
            params = data.get("params")
            if isinstance(source, dict) and isinstance(params, dict) and "chat_append_summary" not in params:
                params = {**params, "chat_append_summary": source.get("chat_append_summary", True)}
                data = {**data, "params": params}
        return data


def parse_request(model: type[BaseModel], raw: str | bytes, step: str) -> Any:
    """Decode and validate a request, rejecting unknown fields."""
    try:
        request = model.model_validate_json(raw)
    except ValidationError as exc:
        raise ValueError(f"{step}: parsing request: {_describe(exc)}") from None
    try:
        request.source.validate_config()
    except ValueError as exc:
        raise ValueError(f"{step}: {exc}") from None
    return request


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def merge_and_validate_sinks(source_sinks: list[str] | None, params_sinks: list[str] | None) -> list[str]:
    """Params sinks override source sinks; both empty means all sinks."""
    sinks = list(params_sinks or source_sinks or DEFAULT_SINKS)
    unsupported = [s for s in sinks if s not in SUPPORTED_SINKS]
    if unsupported:
        raise ValueError(f"unsupported sink(s): {', '.join(unsupported)}")
    return sinks


@dataclass(frozen=True)
class Environment:
    """Build metadata that Concourse passes to the resource as environment variables."""

    build_id: str = ""
    build_name: str = ""
    build_job_name: str = ""
    build_pipeline_name: str = ""
    build_pipeline_instance_vars: str = ""
    build_team_name: str = ""
    build_created_by: str = ""
    atc_external_url: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Environment:
        env = os.environ if environ is None else environ
        return cls(
            build_id=env.get("BUILD_ID", ""),
            build_name=env.get("BUILD_NAME", ""),
            build_job_name=env.get("BUILD_JOB_NAME", ""),
            build_pipeline_name=env.get("BUILD_PIPELINE_NAME", ""),
            build_pipeline_instance_vars=env.get("BUILD_PIPELINE_INSTANCE_VARS", ""),
            build_team_name=env.get("BUILD_TEAM_NAME", ""),
            build_created_by=env.get("BUILD_CREATED_BY", ""),
            atc_external_url=env.get("ATC_EXTERNAL_URL", ""),
        )

    def build_url(self) -> str:
        """Link to the Concourse build page.

        Plain concatenation: an unset variable leaves an empty path segment.
        """
        url = (
            f"{self.atc_external_url}/teams/{self.build_team_name}"
            f"/pipelines/{self.build_pipeline_name}"
            f"/jobs/{self.build_job_name}/builds/{self.build_name}"
        )
        if self.build_pipeline_instance_vars:
            url += f"?vars={quote_plus(self.build_pipeline_instance_vars)}"
        return url
