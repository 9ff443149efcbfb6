"""
Command line interface for the static migration planner.

Usage:
    switchover plan src/                 # Phased plan as text
    switchover plan src/ --format json   # Full plan as JSON
    switchover insights src/ lib/        # Insights and recommendations only
    switchover plan src/ --legacy-marker legacySdk
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterator, Sequence
from pathlib import Path

from switchover.planner.analyzer import MigrationPatternAnalyzer
from switchover.planner.patterns import DEFAULT_LEGACY_MARKER
from switchover.planner.plan import SOURCE_SUFFIXES, PlanReport, analyze_codebase

logger = logging.getLogger(__name__)

SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git", "__pycache__", ".venv", "dist", "build"})


def iter_source_files(paths: Sequence[Path]) -> Iterator[tuple[str, bytes]]:
    """
    Yield (path, raw bytes) for every source artifact under the given paths.

    Files that cannot be opened are logged and skipped; files that open
    but are not text are left to the analyzer, which scores them as low
    confidence.
    """
    for root in paths:
        candidates = [root] if root.is_file() else sorted(root.rglob("*"))
        for path in candidates:
            if not path.is_file() or path.suffix not in SOURCE_SUFFIXES:
                continue
            if any(part in SKIPPED_DIRECTORIES for part in path.parts):
                continue
            try:
                yield str(path), path.read_bytes()
            except OSError as e:
                logger.warning("Could not read %s: %s", path, e)


def format_plan(report: PlanReport) -> str:
    plan = report.plan
    summary = plan.summary
    lines = [
        "=" * 60,
        "Migration Plan",
        "=" * 60,
        f"Components:    {summary.total}",
        f"High priority: {summary.high_priority}",
        f"High risk:     {summary.high_risk}",
        f"Total effort:  {summary.total_effort}h",
    ]
    for phase in plan.phases:
        lines.append("")
        lines.append(f"{phase.key}: {phase.name} ({len(phase.components)} components, {phase.effort}h)")
        for component in phase.components:
            lines.append(
                f"  - {component.path} "
                f"[score {component.migration_score}, risk {component.risk_level.value}, "
                f"{component.effort}h]"
            )
    lines.append("")
    lines.append(format_insights(report))
    return "\n".join(lines)


def format_insights(report: PlanReport) -> str:
    lines = ["Insights:"]
    lines.extend(f"  [{i.kind}] {i.message}" for i in report.insights)
    if not report.insights:
        lines.append("  (none)")
    lines.append("Recommendations:")
    lines.extend(
        f"  [{r.priority.value}] {r.action}: {r.details}" for r in report.recommendations
    )
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="switchover",
        description="Score source artifacts for migration readiness and plan the rollout.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("plan", "Emit the phased migration plan"),
        ("insights", "Emit insights and recommendations only"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("paths", nargs="+", type=Path, help="Source files or directories")
        sub.add_argument(
            "--format",
            choices=("text", "json"),
            default="text",
            help="Output format (default: text)",
        )
        sub.add_argument(
            "--legacy-marker",
            default=DEFAULT_LEGACY_MARKER,
            help=f"Token identifying legacy SDK usage (default: {DEFAULT_LEGACY_MARKER})",
        )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    missing = [p for p in args.paths if not p.exists()]
    if missing:
        parser.error(f"path does not exist: {missing[0]}")

    analyzer = MigrationPatternAnalyzer(legacy_marker=args.legacy_marker)
    report = analyze_codebase(iter_source_files(args.paths), analyzer)

    if args.format == "json":
        payload = report.to_dict()
        if args.command == "insights":
            payload = {
                "insights": payload["insights"],
                "recommendations": payload["recommendations"],
            }
        print(json.dumps(payload, indent=2))
    elif args.command == "insights":
        print(format_insights(report))
    else:
        print(format_plan(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
