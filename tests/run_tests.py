#!/usr/bin/env python3

"""
Test Runner Script

Runs the unit, integration or end-to-end suites with the project's pytest
options.
"""

import argparse
import subprocess
import sys
from pathlib import Path


def run_command(cmd: list[str]) -> int:
    """Run command and return exit code"""
    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd)
    return result.returncode


def marker_expression(test_type: str, marker: str = None, include_slow: bool = False) -> str:
    """Combine suite, extra marker and the slow filter into one -m expression"""
    parts = []
    if test_type != "all":
        parts.append(test_type)
    if marker:
        parts.append(f"({marker})")
    if not include_slow:
        parts.append("not slow")
    return " and ".join(parts)


def main():
    parser = argparse.ArgumentParser(description="Run ANC Plus test suites")

    parser.add_argument(
        "--type",
        choices=["unit", "integration", "e2e", "all"],
        default="all",
        help="Type of tests to run"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--marker", "-m", help="Run tests with specific marker, e.g. extraction")
    parser.add_argument("--keyword", "-k", help="Run tests matching keyword")
    parser.add_argument("--file", help="Run specific test file")
    parser.add_argument("--slow", action="store_true", help="Include slow tests")

    args = parser.parse_args()

    cmd = [sys.executable, "-m", "pytest"]
    cmd.append(args.file if args.file else str(Path(__file__).parent))

    expression = marker_expression(args.type, args.marker, args.slow)
    if expression:
        cmd.extend(["-m", expression])

    if args.keyword:
        cmd.extend(["-k", args.keyword])

    cmd.append("-v" if args.verbose else "--tb=short")
    cmd.extend(["--strict-markers", "--color=yes", "-ra"])

    return run_command(cmd)


if __name__ == "__main__":
    sys.exit(main())
