"""
Entry point for the UK take-home pay calculator.

Usage:
    python main.py              # launches the web app at localhost:5000
    python main.py --cli        # runs the terminal interface
    python main.py --cli -v     # same, with rate and summary logging
"""

import argparse
import logging


def main() -> None:
    parser = argparse.ArgumentParser(
        description="UK Take-Home Pay Calculator",
    )
    parser.add_argument(
        "--cli",
        action="store_true",
        help="Run in terminal mode instead of launching the web app",
    )
    parser.add_argument(
        "--pdf",
        default="take_home_report.pdf",
        help="Where the terminal mode writes its PDF report",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log rate lookups and summary requests",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cli:
        from cli import run_cli
        run_cli(pdf_path=args.pdf)
    else:
        from app import run_web
        run_web()


if __name__ == "__main__":
    main()
