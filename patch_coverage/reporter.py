"""Human-readable rendering of patch coverage results."""

from pathlib import Path
from typing import Optional

from .line_classifier import read_lines

GAP_MARKER = "     ···"


def _gap_aware(line_numbers: list[int]):
    """Yield (needs_gap, line_number) over sorted line numbers."""
    previous: Optional[int] = None
    for number in sorted(line_numbers):
        yield previous is not None and number > previous + 1, number
        previous = number


def render_uncovered_lines(uncovered: dict[str, list[int]], repo_root=".") -> list[str]:
    """Source excerpts of uncovered lines, grouped per file."""
    if not uncovered:
        return []

    lines = ["", "Uncovered lines in patch:"]
    for path in sorted(uncovered):
        lines.append(f"  {path}")
        try:
            source = read_lines(Path(repo_root) / path)
        except OSError as e:
            for gap, number in _gap_aware(uncovered[path]):
                if gap:
                    lines.append(GAP_MARKER)
                lines.append(f"    {number}: <COULD NOT READ FILE: {e}>")
            continue

        for gap, number in _gap_aware(uncovered[path]):
            if gap:
                lines.append(GAP_MARKER)
            if 1 <= number <= len(source):
                lines.append(f"  {number:>3}  │ {source[number - 1].strip()}")
            else:
                lines.append(f"    {number}: <LINE CONTENT UNAVAILABLE - INDEX OUT OF BOUNDS>")
    return lines


def render_summary(summary, package: Optional[str] = None) -> list[str]:
    """Coverage header line, e.g. 'Coverage: 71.43% (5/7 lines covered)'."""
    stats = (
        f"{summary.coverage_percent:.2f}% "
        f"({summary.covered}/{summary.denominator} lines covered)"
    )
    if package:
        return ["", f"Coverage for package '{package}': {stats}"]
    return ["", f"Coverage: {stats}"]


def render_threshold(coverage_percent: float, threshold: float, package: Optional[str] = None) -> str:
    subject = f"Package '{package}' coverage" if package else "Patch coverage"
    verdict = "meets" if coverage_percent >= threshold else "is below"
    return f"{subject} {coverage_percent:.2f}% {verdict} the threshold of {threshold:g}%"


def render_report(summary, repo_root=".", package: Optional[str] = None) -> list[str]:
    """Full text report: header plus uncovered line excerpts."""
    return render_summary(summary, package) + render_uncovered_lines(summary.uncovered, repo_root)
