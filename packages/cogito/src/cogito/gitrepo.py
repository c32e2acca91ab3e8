"""Read the metadata of the git repository handed to the put step."""
from __future__ import annotations

import configparser
from pathlib import Path

from ghstatus.github.url import parse_git_pseudo_url

REMOTE_SECTION = 'remote "origin"'
REMOTE_KEY = "url"

INCOMPATIBLE_REPO = """the received git repository is incompatible with the Cogito configuration.

Git repository configuration (received as 'inputs:' in this PUT step):
      url: {url}
    owner: {git_owner}
     repo: {git_repo}

Cogito SOURCE configuration:
    owner: {owner}
     repo: {repo}"""


def collect_input_dirs(input_dir: Path) -> list[str]:
    try:
        return sorted(p.name for p in input_dir.iterdir() if p.is_dir())
    except OSError as exc:
        raise ValueError(f"collecting directories in {input_dir}: {exc}") from exc


def check_git_repo_dir(repo_dir: Path, hostname: str, owner: str, repo: str) -> None:
    """Fail unless the origin remote of ``repo_dir`` is ``hostname/owner/repo``."""
    parser = configparser.ConfigParser(strict=False, interpolation=None)
    config_path = repo_dir / ".git" / "config"
    try:
        with config_path.open(encoding="utf-8") as fh:
            parser.read_file(fh)
    except (OSError, configparser.Error) as exc:
        raise ValueError(f"parsing .git/config: {exc}") from exc

    git_url = parser.get(REMOTE_SECTION, REMOTE_KEY, fallback="").strip()
    if not git_url:
        raise ValueError(f".git/config: key [{REMOTE_SECTION}]/{REMOTE_KEY}: not found")
    try:
        gu = parse_git_pseudo_url(git_url)
    except ValueError as exc:
        raise ValueError(f".git/config: remote: {exc}") from None

    left = [hostname, owner, repo]
    right = [gu.host, gu.owner, gu.repo]
    if any(a.casefold() != b.casefold() for a, b in zip(left, right)):
        raise ValueError(
            INCOMPATIBLE_REPO.format(
                url=_redact_url(git_url, gu.url.password),
                git_owner=gu.owner,
                git_repo=gu.repo,
                owner=owner,
                repo=repo,
            )
        )


def get_git_commit(repo_dir: Path) -> str:
    """The SHA checked out in ``repo_dir``: detached HEAD or ``ref: <path>``."""
    dot_git = repo_dir / ".git"
    try:
        head = (dot_git / "HEAD").read_text(encoding="utf-8").rstrip("\n")
    except OSError as exc:
        raise ValueError(f"git commit: read HEAD: {exc}") from exc

    tokens = head.split()
    if len(tokens) == 1:
        return head
    if len(tokens) == 2:
        try:
            return (dot_git / tokens[1]).read_text(encoding="utf-8").rstrip("\n")
        except OSError as exc:
            raise ValueError(f"git commit: branch checkout: read SHA file: {exc}") from exc
    raise ValueError(f"git commit: invalid HEAD format: {head!r}")


def _redact_url(url: str, password: str | None) -> str:
    if password:
        return url.replace(f":{password}@", ":REDACTED@", 1)
    return url
