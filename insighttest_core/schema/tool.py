from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

from .result import Error


REPO_PATTERN = r"^[^/]+/[^/]+$"
COMMIT_PATTERN = r"^[0-9A-Za-z]+$"


class ToolRequestBase(BaseModel):
    # Unknown fields are dropped, never forwarded to a handler.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GetDiffRequest(ToolRequestBase):
    repo: str = Field(
        ..., pattern=REPO_PATTERN, description="Repository in owner/name form"
    )
    commit_id: str = Field(
        ...,
        alias="commitId",
        min_length=7,
        max_length=40,
        pattern=COMMIT_PATTERN,
        description="Commit SHA",
    )
    paths: Optional[list[str]] = Field(
        None, description="Only keep files whose path starts with one of these"
    )
    max_patch_bytes: Optional[int] = Field(
        None,
        alias="maxPatchBytes",
        ge=1024,
        le=1024 * 1024,
        description="Cap on stored patch text per file",
    )

    @field_validator("repo")
    @classmethod
    def repo_segments_are_names(cls, v: str) -> str:
        if any(seg in (".", "..") for seg in v.split("/")):
            raise ValueError("repo must be in owner/name form")
        return v


class RunnerSpec(ToolRequestBase):
    image: str = Field(..., min_length=1, max_length=200, description="Docker image")
    cmd: list[str] = Field(..., min_length=1, description="Command argument vector")
    workdir: Optional[str] = Field(
        None, min_length=1, max_length=200, description="Working directory"
    )


class RunCiRequest(ToolRequestBase):
    project_id: str = Field(..., alias="projectId", min_length=1, max_length=100)
    test_plan: str = Field(..., alias="testPlan", min_length=10, max_length=1000)
    runner: RunnerSpec
    artifacts: list[str] = Field(
        ..., min_length=1, description="Artifact patterns to collect"
    )
    timeout_sec: Optional[int] = Field(None, alias="timeoutSec", ge=30, le=3600)

    @field_validator("project_id")
    @classmethod
    def project_id_is_single_path_segment(cls, v: str) -> str:
        if v in (".", "..") or "/" in v or "\\" in v:
            raise ValueError("projectId must be a single path segment")
        return v


class GetCoverageRequest(ToolRequestBase):
    report_id: str = Field(..., alias="reportId", min_length=1, max_length=100)
    format: Literal["lcov", "cobertura"] = Field(
        ..., description="Coverage report format"
    )


class ToolSecrets(BaseModel):
    """Upstream credentials resolved by the gateway."""

    github_token: Optional[str] = None


class ToolResponse(BaseModel):
    success: bool
    tool: str
    trace_id: str
    data: Optional[Any] = None
    error: Optional[Error] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _resolve_refs(obj, defs: dict):
    """Recursively resolve $ref references using the provided definitions."""
    if isinstance(obj, dict):
        if "$ref" in obj:
            ref_name = obj["$ref"].split("/")[-1]
            return _resolve_refs(defs.get(ref_name, {}), defs)
        return {k: _resolve_refs(v, defs) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_resolve_refs(item, defs) for item in obj]
    return obj


def _flatten_json_schema(schema: dict) -> dict:
    """Inline every $ref so callers see one self-contained parameters object."""
    schema = deepcopy(schema)
    defs = schema.pop("$defs", {})
    return _resolve_refs(schema, defs)


class FunctionSchema(BaseModel):
    name: str
    description: str
    parameters: dict

    @field_validator("parameters", mode="before")
    @classmethod
    def flatten_parameters(cls, v: dict) -> dict:
        return _flatten_json_schema(v)


class ToolSchema(BaseModel):
    function: FunctionSchema
    type: Literal["function"] = "function"
