"""Fixed-width rendering and JSON summaries of matrix results."""

import json
import logging
import os
from collections import Counter
from typing import List, Sequence

from core.matrix import MatrixVariant, ScenarioPoint
from core.results import FailureKind, ScenarioResult, Verdict

RESULT_HEADER = "Result"

logger = logging.getLogger(__name__)


def _format_row(cells: Sequence[str], widths: Sequence[int]) -> str:
    return " ".join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()


def render_points(variant: MatrixVariant, points: Sequence[ScenarioPoint]) -> str:
    """Table of enumerated points without results, used for dry listings."""
    headers = ["#"] + [axis.header for axis in variant.axes]
    rows = [[str(i)] + [p.value_of(axis).label for axis in variant.axes]
            for i, p in enumerate(points, start=1)]
    return _render(headers, rows)


def render_table(variant: MatrixVariant, results: Sequence[ScenarioResult]) -> str:
    """One row per result in enumeration order: classification, then axis values."""
    headers = [RESULT_HEADER] + [axis.header for axis in variant.axes]
    rows = [[r.verdict.value] + [r.point.value_of(axis).label for axis in variant.axes]
            for r in results]
    return _render(headers, rows)


def _render(headers: List[str], rows: List[List[str]]) -> str:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    header_line = _format_row(headers, widths)
    lines = [header_line, "-" * len(header_line)]
    lines.extend(_format_row(row, widths) for row in rows)
    return "\n".join(lines)


def render_report(variant: MatrixVariant, results: Sequence[ScenarioResult]) -> str:
    """Full report: banner, table and a one-line summary."""
    table = render_table(variant, results)
    rule_width = max(len(line) for line in table.splitlines())
    title = f" Results: {variant.name} "
    banner = title.center(max(rule_width, len(title) + 2), "=")

    lines = [banner]
    if not variant.verified:
        lines.append("UNVERIFIED: no expected outcome is documented for this variant")
    lines.append(table)
    lines.append("")
    lines.append(summarize(results))
    return "\n".join(lines)


def summarize(results: Sequence[ScenarioResult]) -> str:
    verdicts = Counter(r.verdict for r in results)
    kinds = Counter(r.failure_kind for r in results if r.verdict is Verdict.BUG)
    summary = f"{len(results)} points: {verdicts[Verdict.PASS]} PASS, {verdicts[Verdict.BUG]} BUG"
    if kinds:
        detail = ", ".join(f"{kinds[k]} {k.value}" for k in FailureKind if kinds[k])
        summary += f" ({detail})"
    return summary


def write_summary(variant: MatrixVariant, results: Sequence[ScenarioResult], path: str) -> str:
    """Write every result of the run, in enumeration order, as JSON."""
    summary = {
        'variant': variant.name,
        'variant_verified': variant.verified,
        'axes': [axis.name for axis in variant.axes],
        'results': [
            {
                'index': r.index,
                'verdict': r.verdict.value,
                'point': r.point.as_dict(),
                'raw_label': r.raw_label,
                'return_code': r.return_code,
                'failure_kind': r.failure_kind.value if r.failure_kind else None,
                'log_path': r.log_path,
            }
            for r in results
        ],
        'totals': {
            'points': len(results),
            'pass': sum(1 for r in results if r.verdict is Verdict.PASS),
            'bug': sum(1 for r in results if r.verdict is Verdict.BUG),
        },
    }
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(summary, f, indent=2)
    logger.info(f"Results summary written to {path}")
    return path
