from datetime import datetime
from typing import Literal, Optional
from pydantic import Field
from .utils import CamelModel


CoverageFormat = Literal["lcov", "cobertura"]


class CoverageSummary(CamelModel):
    """Percentages in [0, 100]; 0 whenever the denominator is 0."""

    statements: float = 0
    branches: float = 0
    functions: float = 0
    lines: float = 0


class FileCoverageRates(CamelModel):
    lines: float = 0
    statements: Optional[float] = None
    branches: float = 0
    functions: Optional[float] = None
    complexity: Optional[float] = None


class LineHit(CamelModel):
    line: int
    hits: int


class FileCoverage(CamelModel):
    path: str
    coverage: FileCoverageRates
    lines: list[LineHit] = Field(default_factory=list)


class CoverageReport(CamelModel):
    summary: CoverageSummary
    files: list[FileCoverage] = Field(default_factory=list)


class CoverageMetadata(CamelModel):
    total_files: int
    duration_ms: int
    report_path: str


class CoverageResult(CamelModel):
    report_id: str
    format: CoverageFormat
    timestamp: datetime
    summary: CoverageSummary
    files: list[FileCoverage]
    metadata: CoverageMetadata
