"""
blockflow CLI: analyze, optimize, and predict flow documents.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import yaml

from blockflow.analysis import analyze_flow
from blockflow.graph import Flow, flow_analysis_to_dict, flow_from_dict
from blockflow.logging_config import configure_logging
from blockflow.optimization import (
    FlowOptimizer,
    optimized_flow_to_dict,
    performance_to_dict,
    predict_performance,
)


def main(argv: list[str] | None = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code: 0 on success, 1 on errors or structural problems, 130 on interrupt
    """
    parser = argparse.ArgumentParser(
        description="blockflow: static analysis and optimization for block-based flows"
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="More log output (-v info, -vv debug)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    analyze_parser = subparsers.add_parser("analyze", help="Features, execution order, patterns")
    analyze_parser.add_argument("path", help="Flow document (JSON or YAML)")
    analyze_parser.add_argument("--output", help="Output JSON file path (default: stdout)")

    optimize_parser = subparsers.add_parser("optimize", help="Heuristic optimization report")
    optimize_parser.add_argument("path", help="Flow document (JSON or YAML)")
    optimize_parser.add_argument(
        "--settings", help="Optimizer settings YAML file path (default: built-in settings)"
    )
    optimize_parser.add_argument("--output", help="Output JSON file path (default: stdout)")

    predict_parser = subparsers.add_parser("predict", help="Execution time and memory estimate")
    predict_parser.add_argument("path", help="Flow document (JSON or YAML)")
    predict_parser.add_argument("--output", help="Output JSON file path (default: stdout)")

    args = parser.parse_args(argv)
    configure_logging([logging.WARNING, logging.INFO, logging.DEBUG][min(args.verbose, 2)])

    if args.command == "analyze":
        return _run(args.path, args.output, _analyze)
    if args.command == "optimize":
        return _run(args.path, args.output, lambda flow: _optimize(flow, args.settings))
    if args.command == "predict":
        return _run(args.path, args.output, _predict)
    parser.print_help()
    return 1


def load_flow_document(path: Path) -> Flow:
    """Read a flow from a .json, .yaml, or .yml file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    return flow_from_dict(data)


def _analyze(flow: Flow) -> tuple[dict, list[str]]:
    analysis = analyze_flow(flow)
    return flow_analysis_to_dict(analysis), _error_messages(analysis.patterns)


def _optimize(flow: Flow, settings: str | None) -> tuple[dict, list[str]]:
    optimizer = FlowOptimizer(settings=settings)
    result = asyncio.run(optimizer.optimize(flow))
    problems = _error_messages(result.analysis.patterns)
    return optimized_flow_to_dict(result), problems


def _predict(flow: Flow) -> tuple[dict, list[str]]:
    prediction = asyncio.run(predict_performance(flow))
    return performance_to_dict(prediction), []


def _error_messages(patterns) -> list[str]:
    messages = [i.message for i in patterns.structural_issues if i.level == "error"]
    messages.extend(a.description for a in patterns.anti_patterns if a.type == "circular_dependency")
    return messages


def _run(path: str, output: str | None, command) -> int:
    """
    Load the flow at path, run command, and write its JSON result.

    Returns:
        Exit code: 0 on success, 1 on errors or structural problems
    """
    try:
        path_obj = Path(path)
        if not path_obj.exists():
            print(f"Error: Path does not exist: {path}", file=sys.stderr)
            return 1

        flow = load_flow_document(path_obj)
        result, problems = command(flow)

        output_json = json.dumps(result, indent=2, sort_keys=True)
        if output:
            Path(output).write_text(output_json, encoding="utf-8")
        else:
            print(output_json)

        if problems:
            for problem in problems:
                print(f"Warning: {problem}", file=sys.stderr)
            return 1
        return 0

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
