"""Credentials for the GitHub API: personal access token or GitHub App."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from functools import cached_property
from typing import Callable, Union

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ghstatus.connectors.http import HttpConnector, TransportError

logger = logging.getLogger(__name__)

JWT_BACKDATE_SECONDS = 60
JWT_LIFETIME_SECONDS = 120


class InstallationTokenError(RuntimeError):
    """Raised when an installation token cannot be minted."""


@dataclass(frozen=True)
class PersonalToken:
    token: str = field(repr=False)

    def authorization(self) -> str:
        return f"token {self.token}"


@dataclass(frozen=True)
class AppIdentity:
    client_id: str
    installation_id: int
    private_key: str = field(repr=False)

    def validate(self) -> None:
        missing = []
        if not self.client_id:
            missing.append("github_app.client_id")
        if not self.installation_id:
            missing.append("github_app.installation_id")
        if not self.private_key:
            missing.append("github_app.private_key")
        if missing:
            raise ValueError(f"github_app: missing mandatory keys: {', '.join(missing)}")
        _ = self.rsa_key

    @cached_property
    def rsa_key(self) -> rsa.RSAPrivateKey:
        """The parsed PEM key (PKCS#1 or PKCS#8). Parsed once per identity."""
        try:
            key = serialization.load_pem_private_key(self.private_key.encode("utf-8"), password=None)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"github_app: could not parse private key: {exc}") from None
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ValueError("github_app: could not parse private key: not an RSA key")
        return key


Credentials = Union[PersonalToken, AppIdentity]


def generate_jwt(client_id: str, key: rsa.RSAPrivateKey, now: Callable[[], float] = time.time) -> str:
    """Sign the JWT used to authenticate as the GitHub App.

    GitHub rejects fractional ``iat``/``exp`` and recommends backdating ``iat``
    by 60 seconds. The token is valid for one minute from now.
    """
    issued_at = int(now()) - JWT_BACKDATE_SECONDS
    claims = {
        "iat": issued_at,
        "exp": issued_at + JWT_LIFETIME_SECONDS,
        "iss": client_id,
    }
    return jwt.encode(claims, key, algorithm="RS256")


def generate_installation_token(client: HttpConnector, server: str, app: AppIdentity) -> str:
    """Exchange a signed JWT for a short-lived installation token. Not retried."""
    url = f"{server}/app/installations/{app.installation_id}/access_tokens"
    headers = {
        "Accept": "application/vnd.github.v3+json",
        "Authorization": f"Bearer {generate_jwt(app.client_id, app.rsa_key)}",
    }
    try:
        outcome = client.execute("POST", url, headers=headers, require_date=False)
    except TransportError as exc:
        raise InstallationTokenError(f"generate github app installation token: {exc}") from exc

    if outcome.status_code != 201:
        raise InstallationTokenError(
            f"generate github app installation token: status code: {outcome.status_code} ({outcome.body})"
        )
    try:
        token = json.loads(outcome.body)["token"]
    except (ValueError, KeyError, TypeError) as exc:
        raise InstallationTokenError(f"generate github app installation token: json decode: {exc}") from exc
    if not isinstance(token, str) or not token:
        raise InstallationTokenError("generate github app installation token: empty token in response")

    logger.debug("github_app.token_issued installation_id=%s", app.installation_id)
    return token
