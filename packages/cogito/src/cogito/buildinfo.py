from __future__ import annotations

from importlib import metadata


def build_info() -> str:
    try:
        version = metadata.version("cogito-resource")
    except metadata.PackageNotFoundError:
        version = "unknown"
    return f"This is the Cogito GitHub status resource. {version}"
