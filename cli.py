"""
Patch Coverage CLI

Commands:
    coverage  - Run the tests and check coverage of the lines changed vs. a base branch
"""

import argparse
import json
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def cmd_coverage(args):
    """Check that changed lines are covered by tests."""
    from patch_coverage import (
        ConfigurationError,
        CoverageConfig,
        PatchCoverageCheck,
        TestRunError,
        ThresholdNotMetError,
        find_workspace_root,
        render_report,
    )

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    repo_root = find_workspace_root(args.root, marker="package.json")
    if repo_root is None:
        logger.error(
            "Could not find a repo folder containing package.json "
            "(used for resolving coverage paths)."
        )
        return 1
    logger.debug(f"Determined repo root: {repo_root}")

    config = CoverageConfig(
        repo_root=repo_root,
        package=args.filter,
        verbose=args.verbose,
        threshold=args.threshold,
        base=args.base,
    )
    check = PatchCoverageCheck(config)

    try:
        summary = check.run()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except TestRunError as e:
        print("test stdout:")
        for line in e.stdout_lines:
            print(line)
        print("test stderr:", file=sys.stderr)
        for line in e.stderr_lines:
            print(line, file=sys.stderr)
        logger.error(str(e))
        return 1

    if args.format == "json":
        print(json.dumps(summary.to_dict(), indent=2))
    elif summary.skipped:
        print(summary.message)
        return 0
    else:
        for line in render_report(summary, repo_root, args.filter):
            print(line)

    try:
        message = check.enforce_threshold(summary)
    except ThresholdNotMetError as e:
        print(str(e), file=sys.stderr)
        print(f"Coverage threshold not met (short by {e.shortfall:.2f}%).", file=sys.stderr)
        return 1

    if message and args.format == "text":
        print(message)
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="patch-coverage",
        description="Check test coverage of the lines changed in a working tree"
    )
    subparsers = parser.add_subparsers(dest="command")

    cov_p = subparsers.add_parser(
        "coverage",
        help="Run tests and check coverage of changed lines",
        description="Diffs against a base branch, runs the tests with coverage and reports changed lines that no test executes"
    )
    cov_p.add_argument("-v", "--verbose", action="store_true", help="Show debug output and warnings")
    cov_p.add_argument("-f", "--filter", metavar="PACKAGE", help="Only check (and test) this package")
    cov_p.add_argument("--threshold", type=float, help="Fail when patch coverage (percent) is below this")
    cov_p.add_argument("--base", default="main", help="Branch or commit to diff against (default: main)")
    cov_p.add_argument("--root", help="Directory to start looking for the workspace root")
    cov_p.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    cov_p.set_defaults(func=cmd_coverage)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        print("\nQuick start:")
        print("  1. Make changes on a branch off main")
        print("  2. Check their coverage:    patch-coverage coverage --threshold 80")
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
