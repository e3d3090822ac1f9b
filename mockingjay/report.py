"""Summarise compatibility check results as a narrative and as JSON."""

import json
from typing import List, Sequence

from mockingjay.models import CheckResult, CompatibilityReport


def build_report(results: Sequence[CheckResult]) -> CompatibilityReport:
    """Aggregate check results into a report.

    Args:
        results: One CheckResult per endpoint, in any order.

    Returns:
        A CompatibilityReport with results sorted by endpoint name.
    """
    ordered = sorted(results, key=lambda r: r.name)
    failed = [r for r in ordered if not r.success]
    return CompatibilityReport(
        results=ordered,
        passed=len(ordered) - len(failed),
        failed=len(failed),
        narrative=_build_narrative(ordered, failed),
    )


def report_to_dict(report: CompatibilityReport) -> dict:
    return {
        "compatible": report.compatible,
        "passed": report.passed,
        "failed": report.failed,
        "results": [
            {
                "name": r.name,
                "success": r.success,
                "diagnostic": r.diagnostic,
                "transport_error": r.transport_error,
            }
            for r in report.results
        ],
    }


def report_to_json(report: CompatibilityReport) -> str:
    return json.dumps(report_to_dict(report), indent=2)


def _build_narrative(results: List[CheckResult], failed: List[CheckResult]) -> str:
    lines = []
    if not results:
        lines.append("No endpoints to check.")
    elif not failed:
        lines.append(f"All {len(results)} endpoints are compatible.")
    else:
        lines.append(f"INCOMPATIBLE: {len(failed)} of {len(results)} endpoint(s) failed.")
        for r in failed:
            lines.append(f"  - {r.name}: {r.diagnostic}")

        transport = sum(1 for r in failed if r.transport_error)
        if transport:
            lines.append(f"{transport} failure(s) were transport errors, not mismatches.")

    return "\n".join(lines)
