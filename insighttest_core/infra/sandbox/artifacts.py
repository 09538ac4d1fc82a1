import os
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from ...env import LOG
from ...schema.sandbox import Artifact

_SIZE_UNITS = ["B", "KB", "MB", "GB"]


def format_file_size(size: int) -> str:
    """Human readable size with at most two decimals, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 B"
    i = 0
    while size >= 1024 ** (i + 1) and i < len(_SIZE_UNITS) - 1:
        i += 1
    value = f"{size / 1024**i:.2f}".rstrip("0").rstrip(".")
    return f"{value} {_SIZE_UNITS[i]}"


def matches_pattern(relative_path: str, pattern: str) -> bool:
    """
    Match a sandbox-relative path against an artifact pattern.

    A pattern ending in ``/`` selects everything under that directory; any
    other pattern matches the exact relative path or a suffix of it.
    """
    if pattern.endswith("/"):
        return relative_path.startswith(pattern)
    return relative_path == pattern or relative_path.endswith(pattern)


def collect_artifacts(
    output_dir: str,
    patterns: Iterable[str],
    mount_path: str = "/artifacts",
) -> list[Artifact]:
    """
    Collect files under ``output_dir`` that match at least one pattern.

    Results are ordered most recently modified first. A missing or unreadable
    directory yields an empty list and a warning; this never raises.
    """
    patterns = list(patterns)
    root = Path(output_dir)
    artifacts: list[Artifact] = []
    try:
        if not root.is_dir():
            raise FileNotFoundError(f"Artifacts directory not found: {output_dir}")
        for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
            for filename in filenames:
                file_path = Path(dirpath) / filename
                relative = file_path.relative_to(root).as_posix()
                if not any(matches_pattern(relative, p) for p in patterns):
                    continue
                # Symlinks are not followed; only regular files inside the run dir count.
                info = file_path.lstat()
                if not stat.S_ISREG(info.st_mode):
                    continue
                artifacts.append(
                    Artifact(
                        name=relative,
                        path=f"{mount_path.rstrip('/')}/{relative}",
                        size=info.st_size,
                        size_formatted=format_file_size(info.st_size),
                        last_modified=datetime.fromtimestamp(
                            info.st_mtime, tz=timezone.utc
                        ),
                    )
                )
    except OSError as e:
        LOG.warning(f"Failed to collect artifacts from {output_dir}: {e}")
        return []

    artifacts.sort(key=lambda a: a.last_modified, reverse=True)
    return artifacts


def _raise(error: OSError) -> None:
    raise error
