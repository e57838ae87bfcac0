# hostinfo.py
from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import Dict

OS_RELEASE = Path("/etc/os-release")


def read_os_release(path: str | Path = OS_RELEASE) -> Dict[str, str]:
    """
    Parse an os-release file into a dict.
    Missing file -> {} (e.g. containers without /etc/os-release).
    """
    p = Path(path)
    if not p.exists():
        return {}

    data: Dict[str, str] = {}
    for raw in p.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        data[key.strip()] = value
    return data


def release_version(info: Dict[str, str]) -> str:
    """VERSION_ID, e.g. "22.04"; empty string if unknown."""
    return info.get("VERSION_ID", "")


def release_codename(info: Dict[str, str]) -> str:
    """Codename used for the Docker apt repository."""
    return info.get("UBUNTU_CODENAME") or info.get("VERSION_CODENAME") or ""


def release_matches(release: str, pattern: str) -> bool:
    """Glob match of a release string, e.g. release_matches("20.04", "20.04*")."""
    if not release:
        return False
    return fnmatch(release, pattern)
