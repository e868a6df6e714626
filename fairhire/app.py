import argparse
import json
import threading
from pathlib import Path
from typing import Any, List

from . import __version__
from .anonymize import AnonymizationBinding
from .config import load_settings
from .database import init_database
from .env import load_env
from .errors import FairHireError
from .logger import get_logger
from .models import CandidateStatus
from .ranking import RankingEngine
from .repository import ScoreRepository
from .schema import (
    rubric_from_dict,
    validate_candidate,
    validate_candidate_strict,
    validate_rubric,
    validate_rubric_strict,
)
from .scoring import build_scorer


def _read_json(path_str: str) -> Any:
    input_path = Path(path_str)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Invalid JSON in {input_path}: line {e.lineno}")


def _as_records(data: Any) -> List[dict]:
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list) and all(isinstance(r, dict) for r in data):
        return data
    raise SystemExit("Input must be a JSON object or a list of objects")


def _repository(args: argparse.Namespace) -> ScoreRepository:
    return ScoreRepository(Path(args.db))


def cmd_init_db(args: argparse.Namespace) -> None:
    init_database(Path(args.db))
    print(f"Database ready: {args.db}")


def cmd_add_job(args: argparse.Namespace) -> None:
    data = _read_json(args.input)
    if not isinstance(data, dict):
        raise SystemExit("Rubric input must be a JSON object")
    if args.scheme:
        data = {**data, "scheme": args.scheme}
    rubric = rubric_from_dict(data, default_scheme=args.default_scheme)
    repo = _repository(args)
    try:
        repo.add_job(args.key, args.title or args.key, rubric)
    finally:
        repo.close()
    print(f"Job: {args.key}")
    print(f"Scheme: {rubric.scheme}")
    print(f"Requirements: {', '.join(rubric.requirements) or '(none)'}")


def cmd_intake(args: argparse.Namespace) -> None:
    records = _as_records(_read_json(args.input))
    repo = _repository(args)
    binding = AnonymizationBinding(repo)
    stored = failed = 0
    try:
        for index, raw in enumerate(records):
            try:
                profile = binding.intake(raw, args.job)
            except FairHireError as e:
                # Record position only; the record itself may carry identity
                print(f"[error] record {index}: {e}")
                failed += 1
                continue
            stored += 1
            print(f"[pending] {profile.anonymized_id}")
        total = repo.count_candidates(args.job)
    finally:
        repo.close()
    print(f"Done. stored={stored} failed={failed} total={total}")


def cmd_validate(args: argparse.Namespace) -> None:
    data = _read_json(args.input)
    if not isinstance(data, dict):
        raise SystemExit("Input must be a JSON object")
    if args.kind == "rubric":
        errors = validate_rubric_strict(data)[1] if args.strict else validate_rubric(data)
    else:
        errors = validate_candidate_strict(data)[1] if args.strict else validate_candidate(data)
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_rank(args: argparse.Namespace) -> None:
    settings = args.settings
    logger = get_logger()
    repo = _repository(args)
    try:
        engine = RankingEngine(
            scorer=build_scorer(settings, logger=logger),
            repository=repo,
            max_workers=args.workers or settings.max_workers,
            logger=logger,
        )
        cancel = threading.Event()
        try:
            outcome = engine.rank_job(args.job, cancel_event=cancel)
        except KeyboardInterrupt:
            cancel.set()
            raise SystemExit("Interrupted. Scores saved so far are kept.")
        if outcome.failures and args.retry_saves:
            engine.retry_failed_saves(outcome)
    finally:
        repo.close()
        logger.log_metrics_summary()

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
        return

    print(f"Ranking for {outcome.job_key} ({len(outcome.scored_now)} newly scored):\n")
    for place, entry in enumerate(outcome.entries, start=1):
        print(f"{place}. {entry.anonymized_id}  score={entry.total_score}")
        for line in entry.explanation.splitlines():
            print(f"     {line}")
    for failure in outcome.failures:
        print(f"[failed:{failure.stage}] {failure.anonymized_id} -> {failure.error_type}")
    if outcome.cancelled:
        print(f"Cancelled. Not started: {', '.join(outcome.skipped)}")


def cmd_list(args: argparse.Namespace) -> None:
    repo = _repository(args)
    try:
        if not args.job:
            jobs = repo.list_jobs()
            if not jobs:
                print("No jobs in database.")
                return
            for job in jobs:
                state = "active" if job["active"] else "inactive"
                print(f"{job['job_key']}  {job['title']}  scheme={job['scheme']}  {state}")
            return
        rows = repo.list_candidates(args.job)
    finally:
        repo.close()
    if not rows:
        print(f"No candidates for {args.job}.")
        return
    print(f"Found {len(rows)} candidates for {args.job}:\n")
    for row in rows:
        score = "-" if row["total_score"] is None else row["total_score"]
        print(f"{row['submission_seq']:>4}  {row['anonymized_id']}  status={row['status']}  score={score}")


def cmd_decide(args: argparse.Namespace) -> None:
    repo = _repository(args)
    try:
        notice = repo.record_decision(args.candidate, CandidateStatus(args.status))
        has_contact = repo.load_identity(args.candidate) is not None
    finally:
        repo.close()
    print(f"Candidate: {notice.anonymized_id}")
    print(f"Status: {notice.status.value}")
    print(f"Contact on file: {'yes' if has_contact else 'no'}")
    if args.show_explanation:
        print(notice.explanation)


def cmd_reset(args: argparse.Namespace) -> None:
    repo = _repository(args)
    try:
        count = repo.reset_scores(args.job, candidate_ids=args.candidate or None)
    finally:
        repo.close()
    print(f"Reset {count} score(s) for {args.job}")


def main(argv=None):
    # Load .env if present (FAIRHIRE_*, OPENAI_API_KEY)
    load_env()
    settings = load_settings()

    parser = argparse.ArgumentParser(prog="fairhire", description="FairHire: anonymized candidate ranking")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", default=str(settings.db_path), help=f"SQLite database (default: {settings.db_path})")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create the database tables")
    ini.set_defaults(func=cmd_init_db)

    add = subparsers.add_parser("add-job", help="Register a job and its rubric")
    add.add_argument("--key", required=True, help="Job key")
    add.add_argument("--title", help="Job title (default: key)")
    add.add_argument("--input", required=True, help="Rubric JSON: requirements, optional scheme/weights")
    add.add_argument("--scheme", choices=["five_dimension", "legacy"], help="Override the rubric's scheme")
    add.set_defaults(func=cmd_add_job, default_scheme=settings.scoring_scheme)

    itk = subparsers.add_parser("intake", help="Anonymize and store candidate records for a job")
    itk.add_argument("--job", required=True, help="Job key")
    itk.add_argument("--input", required=True, help="JSON object or list of extracted CV records")
    itk.set_defaults(func=cmd_intake)

    val = subparsers.add_parser("validate", help="Validate a candidate or rubric JSON")
    val.add_argument("--input", required=True, help="Path to JSON input")
    val.add_argument("--kind", choices=["candidate", "rubric"], default="candidate")
    val.add_argument("--strict", action="store_true", help="Apply strict rules")
    val.set_defaults(func=cmd_validate)

    rnk = subparsers.add_parser("rank", help="Score new candidates of a job and print the ranking")
    rnk.add_argument("--job", required=True, help="Job key")
    rnk.add_argument("--workers", type=int, help=f"Parallel scorers (default: {settings.max_workers})")
    rnk.add_argument("--retry-saves", action="store_true", help="Retry failed score saves once")
    rnk.add_argument("--json", action="store_true", help="Print the outcome as JSON")
    rnk.set_defaults(func=cmd_rank)

    lst = subparsers.add_parser("list", help="List jobs, or candidates of one job")
    lst.add_argument("--job", help="Job key")
    lst.set_defaults(func=cmd_list)

    dec = subparsers.add_parser("decide", help="Accept or reject a scored candidate")
    dec.add_argument("--candidate", required=True, help="Anonymized candidate id")
    dec.add_argument("--status", required=True, choices=["accepted", "rejected"])
    dec.add_argument("--show-explanation", action="store_true", help="Print the stored explanation")
    dec.set_defaults(func=cmd_decide)

    rst = subparsers.add_parser("reset", help="Clear scores of pending candidates so they are re-scored")
    rst.add_argument("--job", required=True, help="Job key")
    rst.add_argument("--candidate", action="append", help="Limit to this candidate (repeatable)")
    rst.set_defaults(func=cmd_reset)

    args = parser.parse_args(argv)
    args.settings = settings

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        get_logger(level=settings.log_level)
        try:
            args.func(args)
        except FairHireError as e:
            raise SystemExit(f"Error: {e}")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
