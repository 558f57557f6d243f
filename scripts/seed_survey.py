"""Create a survey in the configured ledger store from the command line."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Create one survey in the ledger (operator acts as the creator).",
    )
    parser.add_argument("name", type=str, help="Display name of the survey.")
    parser.add_argument(
        "--creator",
        type=str,
        required=True,
        help="Identity address recorded as the survey creator.",
    )
    parser.add_argument(
        "--start",
        type=str,
        required=True,
        help="Window start: ISO datetime or ledger seconds.",
    )
    parser.add_argument(
        "--end",
        type=str,
        required=True,
        help="Window end: ISO datetime or ledger seconds.",
    )
    parser.add_argument(
        "--candidate",
        dest="candidates",
        action="append",
        default=[],
        help="Candidate identity; repeat for each candidate.",
    )
    parser.add_argument(
        "--description",
        type=str,
        default="",
        help="Survey description.",
    )
    parser.add_argument(
        "--initialize",
        action="store_true",
        help="Initialize the ledger with the creator as admin first.",
    )
    return parser.parse_args(argv)


def seed_survey(args: argparse.Namespace) -> int:
    """Create the survey described by ``args`` and return its id."""
    from survey_ledger.dependencies import get_store
    from survey_ledger.services.survey_service import SurveyService
    from survey_ledger.utils.time import parse_ledger_time

    service = SurveyService(get_store())
    if args.initialize:
        service.initialize(caller=args.creator, admin=args.creator)

    return service.create_survey(
        caller=args.creator,
        creator=args.creator,
        name=args.name,
        description=args.description,
        start_time=parse_ledger_time(args.start),
        end_time=parse_ledger_time(args.end),
        candidates=args.candidates,
    )


def main() -> None:
    """CLI entry point."""
    from survey_ledger.utils.errors import AppError

    args = parse_args()
    try:
        survey_id = seed_survey(args)
    except AppError as exc:
        print(f"{exc.code}: {exc.message}", file=sys.stderr)
        raise SystemExit(1) from exc
    print(f"Created survey {survey_id}")


if __name__ == "__main__":
    main()
