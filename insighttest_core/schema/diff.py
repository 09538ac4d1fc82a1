from typing import Literal, Optional
from pydantic import Field
from .utils import CamelModel


FileStatus = Literal["added", "removed", "modified", "renamed"]


class Hunk(CamelModel):
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int


class DiffFile(CamelModel):
    path: str
    old_path: Optional[str] = None
    status: FileStatus = "modified"
    additions: int = 0
    deletions: int = 0
    hunks: list[Hunk] = Field(default_factory=list)
    patch: str = ""
    truncated: bool = False


class CommitInfo(CamelModel):
    sha: str
    message: str
    author: str
    timestamp: Optional[str] = None


class DiffMetadata(CamelModel):
    total_files: int
    total_additions: int
    total_deletions: int
    duration_ms: int


class DiffResult(CamelModel):
    commit_id: str
    repo: str
    commit_message: str
    author: str
    timestamp: Optional[str] = None
    files: list[DiffFile]
    scoped_context: str
    metadata: DiffMetadata
