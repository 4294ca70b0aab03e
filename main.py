# main.py
"""CLI entry point for the ClueForge event generation batch."""

from __future__ import annotations

import argparse

from orchestration.cli_runner import run


def main() -> None:
    """Parse command-line arguments and run one batch."""
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "target_count",
        nargs="?",
        type=int,
        default=None,
        help="Number of years to generate events for (1-50, default 10)",
    )
    args = parser.parse_args()
    run(args.target_count)


if __name__ == "__main__":
    main()
