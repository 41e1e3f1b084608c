#!/usr/bin/env python3
"""Command-line interface for grading assignments stored in a YAML gradebook."""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from quizmark.libs.config_loader import get_config, load_all_configs
from .batch_grader import BatchGrader
from .exceptions import GradingError
from .feedback import FeedbackOutcome
from .service import GradingService, create_service
from .store import YamlStore

LOG = logging.getLogger(__name__)


def _load_payload(path: Path) -> dict:
    with open(path, 'r') as f:
        if path.suffix == '.json':
            return json.load(f)
        return yaml.safe_load(f)


def _print_outcomes(title: str, results) -> None:
    print(f"\n{'='*60}")
    print(title)
    print(f"{'='*60}")
    print(f"Total submissions: {len(results)}")
    for status in ('succeeded', 'partial', 'skipped', 'failed'):
        count = sum(1 for r in results if r.status == status)
        if count:
            print(f"{status.capitalize()}: {count}")
    for result in results:
        score = '--' if result.ai_score is None else f"{result.ai_score:g}"
        line = f"  #{result.submission_id} {result.student_name}: {result.status} (aiScore {score})"
        if result.error_message:
            line += f" - {result.error_message}"
        print(line)


def cmd_create_assignment(service: GradingService, args) -> int:
    assignment = service.create_assignment(_load_payload(args.file))
    print(f"Created assignment {assignment.id}: {assignment.title} "
          f"({len(assignment.questions)} questions, {assignment.total_marks:g} marks)")
    return 0


def cmd_submit(service: GradingService, args) -> int:
    submission = service.submit_answers(args.assignment_id, _load_payload(args.file))
    print(f"Created submission {submission.id} for {submission.student_name}")
    return 0


def cmd_auto_grade(service: GradingService, args) -> int:
    batch = BatchGrader(service.store, service.configs, lock_graded=service.lock_graded,
                        max_concurrent=args.max_threads)
    results = batch.auto_grade_all(args.assignment_id)
    _print_outcomes("Auto-grading Complete", results)
    if args.summary:
        batch.save_summary(results, args.summary)
        print(f"\nSummary saved to: {args.summary}")
    return 1 if any(r.status == 'failed' for r in results) else 0


def cmd_manual_grade(service: GradingService, args) -> int:
    submission = service.manual_grade_answer(args.submission_id, args.question,
                                             args.verdict == 'correct', args.marks)
    print(f"Submission {submission.id}: question {args.question} marked {args.verdict}, "
          f"aiScore {submission.ai_score:g}")
    return 0


def cmd_feedback(service: GradingService, args) -> int:
    if args.assignment:
        results = service.generate_feedback_for_assignment(args.id)
        _print_outcomes("Feedback Generation Complete", results)
        return 1 if any(r.status in ('failed', 'partial') for r in results) else 0

    result = service.generate_feedback(args.id)
    print(f"Submission {args.id}: {result.outcome.value} "
          f"({len(result.generated)} generated, {len(result.skipped)} skipped, "
          f"{len(result.failures)} failed)")
    for failure in result.failures:
        print(f"  question {failure.question_number}: {failure.error} (retryable)")
    return 0 if result.outcome is FeedbackOutcome.SUCCEEDED else 1


def cmd_finalize(service: GradingService, args) -> int:
    submission = service.finalize_submission(args.submission_id, args.score, args.grade)
    print(f"Submission {submission.id} finalized: {submission.final_score:g} ({submission.final_grade})")
    return 0


def cmd_reopen(service: GradingService, args) -> int:
    submission = service.reopen_submission(args.submission_id)
    print(f"Submission {submission.id} reopened")
    return 0


def cmd_status(service: GradingService, args) -> int:
    status = service.grading_status(args.assignment_id)
    print(yaml.safe_dump(status, default_flow_style=False, sort_keys=False))
    return 0


def cmd_show(service: GradingService, args) -> int:
    detail = service.get_submission_detail(args.submission_id)
    print(yaml.safe_dump(detail, default_flow_style=False, sort_keys=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Grade multiple-choice and short-answer assignments',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create an assignment from a YAML or JSON file
  quizmark-grade create-assignment quiz1.yaml

  # Record a student's answers
  quizmark-grade submit 1 alice.yaml

  # Auto-grade every submission and save a summary
  quizmark-grade auto-grade 1 --summary grading_summary.yaml

  # Grade a short answer by hand
  quizmark-grade manual-grade 3 2 correct

  # Generate AI feedback for one submission, or for a whole assignment
  quizmark-grade feedback 3
  quizmark-grade feedback 1 --assignment

  # Finalize using the aiScore, or with an explicit score
  quizmark-grade finalize 3
  quizmark-grade finalize 3 --score 85
        """
    )
    parser.add_argument('--store', type=Path, default=None,
                        help='Gradebook YAML file (default: grading.store_path from config)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('create-assignment', help='Create an assignment from a YAML/JSON file')
    p.add_argument('file', type=Path)
    p.set_defaults(func=cmd_create_assignment)

    p = sub.add_parser('submit', help="Record a student's answers from a YAML/JSON file")
    p.add_argument('assignment_id', type=int)
    p.add_argument('file', type=Path)
    p.set_defaults(func=cmd_submit)

    p = sub.add_parser('auto-grade', help='Auto-grade every submission of an assignment')
    p.add_argument('assignment_id', type=int)
    p.add_argument('--max-threads', '-t', type=int, default=None,
                   help='Maximum number of concurrent grading tasks (overrides config value)')
    p.add_argument('--summary', '-o', type=Path, default=None, help='Save a YAML summary here')
    p.set_defaults(func=cmd_auto_grade)

    p = sub.add_parser('manual-grade', help='Override the verdict on one question')
    p.add_argument('submission_id', type=int)
    p.add_argument('question', type=int)
    p.add_argument('verdict', choices=['correct', 'incorrect'])
    p.add_argument('--marks', type=float, default=None,
                   help="Marks if correct (default: the question's marks)")
    p.set_defaults(func=cmd_manual_grade)

    p = sub.add_parser('feedback', help='Generate AI feedback for graded answers')
    p.add_argument('id', type=int, help='Submission id (assignment id with --assignment)')
    p.add_argument('--assignment', action='store_true',
                   help='Treat id as an assignment and process all of its submissions')
    p.set_defaults(func=cmd_feedback)

    p = sub.add_parser('finalize', help='Commit the final score and letter grade')
    p.add_argument('submission_id', type=int)
    p.add_argument('--score', type=float, default=None, help='Final score (default: aiScore)')
    p.add_argument('--grade', type=str, default=None, help='Letter grade (default: from score)')
    p.set_defaults(func=cmd_finalize)

    p = sub.add_parser('reopen', help='Reopen a graded submission')
    p.add_argument('submission_id', type=int)
    p.set_defaults(func=cmd_reopen)

    p = sub.add_parser('status', help='Show grading progress for an assignment')
    p.add_argument('assignment_id', type=int)
    p.set_defaults(func=cmd_status)

    p = sub.add_parser('show', help='Show a submission with its assignment')
    p.add_argument('submission_id', type=int)
    p.set_defaults(func=cmd_show)

    return parser


def main(argv=None):
    """Main entry point for quizmark-grade command."""
    args = build_parser().parse_args(argv)

    try:
        configs = load_all_configs()
    except Exception as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=get_config("logging.level", configs, default="INFO"),
        format=get_config("logging.format", configs,
                          default='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    store = YamlStore(args.store) if args.store else None
    service = create_service(configs, store=store)

    try:
        code = args.func(service, args)
    except GradingError as e:
        LOG.error(f"{args.command} failed: {e}")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
