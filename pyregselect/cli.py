# pyregselect/cli.py

import argparse
import sys

from pyregselect.core.exceptions import RegSelectError
from pyregselect.workflows import WORKFLOWS, WorkflowConfig, run_workflow


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyregselect",
        description="Run one of the regression analyses on a CSV file.",
    )

    parser.add_argument(
        "workflow",
        nargs="?",
        choices=sorted(WORKFLOWS),
        help="Which analysis to run.",
    )
    parser.add_argument(
        "csv",
        nargs="?",
        help="Path to the dataset (comma- or semicolon-separated).",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="JSON file of workflow settings (seed, train_fraction, threshold, ...).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the available workflows and exit.",
    )

    return parser


def parse_args(argv=None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.list and (args.workflow is None or args.csv is None):
        parser.error("the following arguments are required: workflow, csv")
    return args


def main(argv=None) -> int:
    args = parse_args(argv)

    if args.list:
        for name, workflow in WORKFLOWS.items():
            print(f"{name:<12}{workflow.description}")
        return 0

    try:
        cfg = WorkflowConfig.from_json(args.config) if args.config else WorkflowConfig()
        report = run_workflow(args.workflow, args.csv, cfg)
    except RegSelectError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    print(report.render(), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
