"""
Coverage report normalization.

Both parsers return a :class:`CoverageReport`; every percentage is 0 when its
denominator is 0.

LCOV per-file ``statements``/``branches``/``functions`` reuse the report-wide
totals (only ``lines`` is computed per file). Callers rely on this shape, so it
is kept as is.
"""

import math
import os
import re
import stat
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..env import LOG
from ..errors import ReportParseError
from ..schema.coverage import (
    CoverageFormat,
    CoverageReport,
    CoverageSummary,
    FileCoverage,
    FileCoverageRates,
    LineHit,
)

_DA = re.compile(r"^DA:(\d+),(\d+)")
_COUNTER = re.compile(r"^(BRF|BRH|FNF|FNH|LF|LH):(\d+)")

FORMAT_EXTENSIONS: dict[str, str] = {
    "lcov": ".info",
    "cobertura": ".xml",
}


def percent(covered: float, total: float) -> float:
    if total <= 0:
        return 0
    return covered / total * 100


@dataclass
class _LcovTotals:
    lines_found: int = 0
    lines_hit: int = 0
    branches_found: int = 0
    branches_hit: int = 0
    functions_found: int = 0
    functions_hit: int = 0
    da_total: int = 0
    da_covered: int = 0


@dataclass
class _LcovFile:
    path: str
    lines: list[LineHit] = field(default_factory=list)


def parse_lcov(content: str) -> CoverageReport:
    """
    Parse an LCOV tracefile.

    ``SF:`` opens a file record and closes the previous one. ``DA:`` lines feed
    both the file's own line hits and the global line totals; ``LF/LH``,
    ``BRF/BRH`` and ``FNF/FNH`` feed global counters. Anything else, including
    malformed markers, is ignored.
    """
    totals = _LcovTotals()
    records: list[_LcovFile] = []
    current: Optional[_LcovFile] = None

    for raw in content.split("\n"):
        line = raw.rstrip("\r")
        if line.startswith("SF:"):
            current = _LcovFile(path=line[3:])
            records.append(current)
            continue
        if current is None:
            continue

        m = _DA.match(line)
        if m is not None:
            hits = int(m.group(2))
            current.lines.append(LineHit(line=int(m.group(1)), hits=hits))
            totals.da_total += 1
            if hits > 0:
                totals.da_covered += 1
            continue

        m = _COUNTER.match(line)
        if m is None:
            continue
        marker, value = m.group(1), int(m.group(2))
        if marker == "BRF":
            totals.branches_found += value
        elif marker == "BRH":
            totals.branches_hit += value
        elif marker == "FNF":
            totals.functions_found += value
        elif marker == "FNH":
            totals.functions_hit += value
        elif marker == "LF":
            totals.lines_found += value
        elif marker == "LH":
            totals.lines_hit += value

    statements = percent(totals.lines_hit, totals.lines_found)
    branches = percent(totals.branches_hit, totals.branches_found)
    functions = percent(totals.functions_hit, totals.functions_found)

    files = []
    for record in records:
        covered = sum(1 for h in record.lines if h.hits > 0)
        files.append(
            FileCoverage(
                path=record.path,
                lines=record.lines,
                coverage=FileCoverageRates(
                    lines=percent(covered, len(record.lines)),
                    statements=statements,
                    branches=branches,
                    functions=functions,
                ),
            )
        )

    return CoverageReport(
        summary=CoverageSummary(
            statements=statements,
            branches=branches,
            functions=functions,
            lines=percent(totals.da_covered, totals.da_total),
        ),
        files=files,
    )


def _int_attr(node: ET.Element, *names: str) -> Optional[int]:
    for name in names:
        value = node.get(name)
        if value is None:
            continue
        value = value.strip()
        if value.isdigit():
            return int(value)
        return None
    return None


def _float_attr(node: ET.Element, name: str) -> Optional[float]:
    value = node.get(name)
    if value is None:
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def _find_summary_node(root: ET.Element) -> Optional[ET.Element]:
    if root.tag == "coverage":
        return root
    return root.find(".//coverage")


def parse_cobertura(content: str) -> CoverageReport:
    """
    Parse a Cobertura XML report.

    Raises:
        ReportParseError: If the document is not XML or its ``<coverage>``
            node lacks integer covered/total line and branch counts.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ReportParseError(f"Cannot parse Cobertura XML: {e}")

    summary_node = _find_summary_node(root)
    if summary_node is None:
        raise ReportParseError("Cannot parse Cobertura XML: no <coverage> node")

    lines_covered = _int_attr(summary_node, "lines-covered")
    lines_total = _int_attr(summary_node, "lines-valid", "total-lines")
    branches_covered = _int_attr(summary_node, "branches-covered")
    branches_total = _int_attr(summary_node, "branches-valid", "total-branches")
    if None in (lines_covered, lines_total, branches_covered, branches_total):
        raise ReportParseError(
            "Cannot parse Cobertura XML: <coverage> is missing line or branch counts"
        )

    files = []
    for node in summary_node.iter("class"):
        filename = node.get("filename")
        line_rate = _float_attr(node, "line-rate")
        branch_rate = _float_attr(node, "branch-rate")
        complexity = _float_attr(node, "complexity")
        if not filename or None in (line_rate, branch_rate, complexity):
            LOG.debug(f"Skipping malformed Cobertura class node: {node.attrib}")
            continue
        files.append(
            FileCoverage(
                path=filename,
                coverage=FileCoverageRates(
                    lines=line_rate * 100,
                    branches=branch_rate * 100,
                    complexity=complexity,
                ),
            )
        )

    line_percent = percent(lines_covered, lines_total)
    return CoverageReport(
        summary=CoverageSummary(
            statements=line_percent,
            branches=percent(branches_covered, branches_total),
            functions=0,
            lines=line_percent,
        ),
        files=files,
    )


PARSERS = {
    "lcov": parse_lcov,
    "cobertura": parse_cobertura,
}


def parse_report(content: str, format: CoverageFormat) -> CoverageReport:
    if format not in PARSERS:
        raise ReportParseError(f"Unsupported coverage format: {format}")
    return PARSERS[format](content)


# -------------------------- report discovery -------------------------- #


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        LOG.debug(f"Skipping unreadable report candidate {path}: {e}")
        return None


def matches_signature(path: Path, format: CoverageFormat) -> bool:
    """True when ``path`` has the extension and content marker of ``format``."""
    if not path.name.endswith(FORMAT_EXTENSIONS[format]):
        return False
    content = _read_text(path)
    if content is None:
        return False
    if format == "lcov":
        return "SF:" in content
    return "<coverage" in content or "cobertura" in content


def _is_regular_file(path: Path) -> bool:
    return stat.S_ISREG(path.lstat().st_mode)


def _sorted_dirs(parent: Path) -> list[Path]:
    return sorted(p for p in parent.iterdir() if p.is_dir() and not p.is_symlink())


def _candidate_run_dirs(root: Path, report_id: str) -> list[Path]:
    """Run directories to search, narrowed by ``report_id`` when it names one."""
    scoped_project = root / report_id
    if report_id not in (".", "..") and os.sep not in report_id and scoped_project.is_dir():
        return _sorted_dirs(scoped_project)

    all_runs = [run for project in _sorted_dirs(root) for run in _sorted_dirs(project)]
    scoped_runs = [run for run in all_runs if run.name == report_id]
    return scoped_runs or all_runs


def find_coverage_report(
    artifacts_root: str, report_id: str, format: CoverageFormat
) -> Optional[Path]:
    """
    Search ``<root>/<project>/<run>/**`` for the first report of ``format``.

    Directories are visited in sorted order. Returns None when nothing
    matches; files of another format are never considered.
    """
    root = Path(artifacts_root)
    try:
        run_dirs = _candidate_run_dirs(root, report_id)
        for run_dir in run_dirs:
            real_run_dir = run_dir.resolve()
            for candidate in sorted(run_dir.rglob("*")):
                # Links are never followed out of the run directory.
                if not _is_regular_file(candidate):
                    continue
                if not candidate.resolve().is_relative_to(real_run_dir):
                    continue
                if matches_signature(candidate, format):
                    return candidate
    except OSError as e:
        LOG.warning(
            f"Failed to search coverage reports under {artifacts_root} "
            f"(reportId={report_id}, format={format}): {e}"
        )
    return None
