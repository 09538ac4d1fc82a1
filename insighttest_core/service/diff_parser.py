"""
Unified diff parsing.

The parser walks the diff text one line at a time. Addition and deletion
counts are taken over the whole file body; only the stored ``patch`` text is
capped at ``max_patch_bytes``. Truncation cuts the text mid-stream (not at a
hunk boundary) and appends ``TRUNCATION_MARKER`` once.
"""

import re
from typing import Iterable, Optional

from ..schema.diff import CommitInfo, DiffFile, Hunk

DEFAULT_MAX_PATCH_BYTES = 256 * 1024
TRUNCATION_MARKER = "\n... (truncated)"

CRITICAL_PATH_MARKERS = (
    "src/",
    "tests/",
    "package.json",
    "Dockerfile",
    "pyproject.toml",
    "requirements.txt",
)

_FILE_HEADER = re.compile(r"^diff --git a/(.+) b/(.+)$")
_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


class _PatchBuffer:
    """Collects patch text, keeping at most ``limit + 1`` bytes in memory."""

    def __init__(self, limit: int):
        self.limit = limit
        self._buf = bytearray()
        self.overflowed = False

    def append(self, line: str) -> None:
        if self.overflowed:
            return
        self._buf.extend(f"{line}\n".encode("utf-8"))
        if len(self._buf) > self.limit:
            del self._buf[self.limit + 1 :]
            self.overflowed = True

    def render(self) -> str:
        if not self.overflowed:
            return self._buf.decode("utf-8", errors="replace")
        head = bytes(self._buf[: self.limit]).decode("utf-8", errors="ignore")
        return head + TRUNCATION_MARKER


def _path_allowed(paths: Optional[list[str]], path: str) -> bool:
    if paths is None:
        return True
    return any(path.startswith(p) for p in paths)


def _parse_hunk_header(line: str) -> Optional[Hunk]:
    m = _HUNK_HEADER.match(line)
    if m is None:
        return None
    old_start, old_lines, new_start, new_lines = m.groups()
    return Hunk(
        old_start=int(old_start),
        old_lines=int(old_lines) if old_lines is not None else 1,
        new_start=int(new_start),
        new_lines=int(new_lines) if new_lines is not None else 1,
    )


def _split_lines(diff_text: str) -> list[str]:
    lines = diff_text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def parse_diff(
    diff_text: str,
    paths: Optional[list[str]] = None,
    max_patch_bytes: int = DEFAULT_MAX_PATCH_BYTES,
) -> list[DiffFile]:
    """
    Parse unified diff text into per-file changes.

    Args:
        diff_text: Raw ``git diff`` style text.
        paths: Optional allow-list of path prefixes. Files matching none of
            them are skipped together with their body.
        max_patch_bytes: Cap on the stored patch text of each file.

    Returns:
        Files in the order their headers appear.
    """
    files: list[DiffFile] = []
    current: Optional[DiffFile] = None
    patch: Optional[_PatchBuffer] = None

    def _finalize() -> None:
        if current is None:
            return
        current.patch = patch.render()
        current.truncated = patch.overflowed
        files.append(current)

    for line in _split_lines(diff_text):
        if line.startswith("diff --git"):
            _finalize()
            current, patch = None, None
            m = _FILE_HEADER.match(line)
            if m is None:
                continue
            # The filter and the reported path both use the post-change (b/) path.
            old_path, new_path = m.group(1), m.group(2)
            if not _path_allowed(paths, new_path):
                continue
            current = DiffFile(path=new_path)
            if old_path != new_path:
                current.old_path = old_path
            patch = _PatchBuffer(max_patch_bytes)
            patch.append(line)
            continue

        if current is None:
            continue
        patch.append(line)

        if line.startswith("@@"):
            hunk = _parse_hunk_header(line)
            if hunk is not None:
                current.hunks.append(hunk)
        elif line.startswith("+"):
            if not line.startswith("+++"):
                current.additions += 1
        elif line.startswith("-"):
            if not line.startswith("---"):
                current.deletions += 1
        elif line.startswith("new file mode"):
            current.status = "added"
        elif line.startswith("deleted file mode"):
            current.status = "removed"
        elif line.startswith("rename from "):
            current.old_path = line[len("rename from ") :]
        elif line.startswith("rename to "):
            current.status = "renamed"
            current.path = line[len("rename to ") :]
            if not _path_allowed(paths, current.path):
                current, patch = None, None

    _finalize()
    return files


def file_type_of(path: str) -> str:
    return path.rsplit(".", 1)[-1]


def _dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def critical_paths(files: list[DiffFile]) -> list[str]:
    return [
        f.path for f in files if any(m in f.path for m in CRITICAL_PATH_MARKERS)
    ]


def build_scoped_context(files: list[DiffFile], commit: CommitInfo) -> str:
    """Short plain-text summary of a commit, used as retrieval context."""
    total_additions = sum(f.additions for f in files)
    total_deletions = sum(f.deletions for f in files)
    file_types = _dedupe(file_type_of(f.path) for f in files)
    return (
        f"Commit: {commit.message} by {commit.author}\n"
        f"Files changed: {len(files)}\n"
        f"Additions: +{total_additions}, Deletions: -{total_deletions}\n"
        f"File types: {', '.join(file_types)}\n"
        f"Critical paths: {', '.join(critical_paths(files))}"
    )
