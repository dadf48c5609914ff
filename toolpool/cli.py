"""
Tool Reuse Report - Command line view of the reuse statistics

Reads manifests from a JSON manifests directory or a database and prints
whether tools are being reused: per agent, per tool type, overall, and the
most reused tools.

Examples:
  # Full report from the configured source (MANIFESTS_DIR / DATABASE_URL)
  toolpool-report

  # Tool types only, from a manifests directory
  toolpool-report --manifests-dir generated-tools/manifests by-type

  # Machine-readable summary
  toolpool-report --database-url sqlite:///tools.db summary --json
"""

import argparse
import logging
import sys
from typing import Callable, Dict, List, Optional, TextIO

from toolpool.config import settings
from toolpool.domain.tools.errors import ManifestSourceError
from toolpool.domain.tools.reporter import ReuseReport, ReuseReporter, ToolUsage
from toolpool.domain.types import ToolClassification
from toolpool.infra.logging import setup_logging
from toolpool.infra.stores import open_manifest_store

logger = logging.getLogger(__name__)


def _usage_info(tool: ToolUsage) -> str:
    if tool.usage_count == 0:
        return "⭕ unused"
    return f"✅ {tool.usage_count} uses ({tool.success_count}S/{tool.failure_count}F)"


def _percent(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value * 100:.1f}%"


def print_by_agent(report: ReuseReport, out: TextIO) -> None:
    print("👥 Tools by Agent:", file=out)
    if not report.agents:
        print("   No tools registered", file=out)

    for agent in report.agents:
        print(
            f"   {agent.agent_id}: {agent.tool_count} tools "
            f"({agent.used_tools} used, {agent.total_usage} total uses)",
            file=out,
        )
        for tool in agent.tools:
            shared = " [shared]" if tool.shared else ""
            print(f"     - {tool.tool_name}: {_usage_info(tool)}{shared}", file=out)
        print("", file=out)


def print_by_type(report: ReuseReport, out: TextIO) -> None:
    print("🛠️  Tool Types:", file=out)
    for summary in report.tool_types:
        if summary.versions > 1:
            label = "redundant" if summary.classification == ToolClassification.REDUNDANT_CREATION else "specialized"
            print(
                f"   {summary.tool_type}: {summary.versions} versions "
                f"by {len(summary.creators)} agent(s) ({label})",
                file=out,
            )
            for tool in summary.tools:
                print(f"     - by {tool.created_by[:8]}: {tool.usage_count} uses", file=out)
        else:
            tool = summary.tools[0]
            print(
                f"   {summary.tool_type}: 1 version by {tool.created_by[:8]} ({tool.usage_count} uses)",
                file=out,
            )

    print("\n🔄 Reuse Patterns:", file=out)
    if report.redundant_types:
        print("   Multiple agents created similar tools:", file=out)
        by_type = {summary.tool_type: summary for summary in report.tool_types}
        for tool_type in report.redundant_types:
            print(f"     - {tool_type}: {by_type[tool_type].versions} versions", file=out)
    else:
        print("   No duplicate tool types found - good specialization!", file=out)


def print_summary(report: ReuseReport, out: TextIO) -> None:
    print("📈 Usage Summary:", file=out)
    print(f"   Total tools: {report.total_tools}", file=out)
    print(f"   Used tools: {report.used_tools} ({_percent(report.used_ratio)})", file=out)
    print(f"   Shared tools: {report.shared_tools}", file=out)
    print(f"   Total usage events: {report.total_usage}", file=out)
    print(f"   Average uses per tool: {report.average_uses_per_tool:.1f}", file=out)
    print(f"   Average success rate: {_percent(report.average_success_rate)}", file=out)


def print_most_reused(report: ReuseReport, out: TextIO) -> None:
    print("🌟 Most Reused Tools:", file=out)
    if not report.most_reused:
        print("   No tool has been used 3 or more times yet", file=out)
    for tool in report.most_reused:
        print(
            f"   {tool.tool_name}: {tool.usage_count} uses ({_percent(tool.success_rate)} success)",
            file=out,
        )


SECTIONS: Dict[str, Callable[[ReuseReport, TextIO], None]] = {
    "by-agent": print_by_agent,
    "by-type": print_by_type,
    "summary": print_summary,
    "most-reused": print_most_reused,
}


def _add_source_options(parser: argparse.ArgumentParser, **defaults) -> None:
    parser.add_argument(
        "--manifests-dir",
        help="Directory of <toolName>.json manifests (default: MANIFESTS_DIR)",
        **defaults,
    )
    parser.add_argument(
        "--database-url",
        help="Database holding the tool_manifests table (default: DATABASE_URL)",
        **defaults,
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON instead of text",
        **defaults,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolpool-report",
        description="Analyze tool creation patterns and usage to verify reuse",
    )
    _add_source_options(parser)

    # Same options after the command; SUPPRESS keeps values given before it
    common = argparse.ArgumentParser(add_help=False)
    _add_source_options(common, default=argparse.SUPPRESS)

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.add_parser("by-agent", parents=[common], help="Tools grouped by creating agent")
    subparsers.add_parser(
        "by-type", parents=[common], help="Tools grouped by canonical type, with redundant creation"
    )
    subparsers.add_parser("summary", parents=[common], help="Registry-wide usage totals")
    subparsers.add_parser("most-reused", parents=[common], help="Tools used 3 or more times")

    return parser


def _report_json(report: ReuseReport, command: Optional[str]) -> str:
    if command == "by-agent":
        include = {"generated_at", "agents", "skipped_manifests"}
    elif command == "by-type":
        include = {"generated_at", "tool_types", "redundant_types", "skipped_manifests"}
    elif command == "summary":
        include = {
            "generated_at", "total_tools", "used_tools", "unused_tools", "shared_tools",
            "total_usage", "average_uses_per_tool", "average_success_rate",
            "skipped_manifests", "skipped_sources",
        }
    elif command == "most-reused":
        include = {"generated_at", "most_reused", "skipped_manifests"}
    else:
        include = None
    return report.model_dump_json(include=include, indent=2)


def main(argv: Optional[List[str]] = None, out: Optional[TextIO] = None) -> int:
    """
    Run the report

    Returns:
        int: 0 on success, 1 when the manifest source cannot be read.
            argparse exits with 2 on usage errors.
    """
    out = out or sys.stdout
    args = build_parser().parse_args(argv)

    setup_logging(level=settings.log_level, use_json=settings.log_json)

    try:
        store = open_manifest_store(
            manifests_dir=args.manifests_dir,
            database_url=args.database_url,
            create=False,
        )
        report = ReuseReporter(store).build_report()
    except ManifestSourceError as e:
        logger.error(f"Cannot read manifests: {e}")
        print(f"❌ {e}", file=sys.stderr)
        return 1

    if args.json:
        print(_report_json(report, args.command), file=out)
        return 0

    print("🔍 Tool Reuse Analysis", file=out)
    print("======================", file=out)
    print(f"📊 Found {report.total_tools} tools", file=out)
    if report.skipped_manifests:
        print(
            f"⚠️  Skipped {report.skipped_manifests} malformed manifests: "
            f"{', '.join(report.skipped_sources)}",
            file=out,
        )
    print("", file=out)

    commands = [args.command] if args.command else list(SECTIONS)
    for index, command in enumerate(commands):
        if index:
            print("", file=out)
        SECTIONS[command](report, out)

    return 0


if __name__ == "__main__":
    sys.exit(main())
