#!/usr/bin/env python3
"""Command-line interface for grading every submission of an assignment."""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List

import yaml

from gradeflow.libs.config_loader import ConfigType, get_config, load_all_configs, load_configs
from gradeflow.libs.extraction import DocumentExtractor, parse_document_ref, policy_from_config
from .answer_key_store import AnswerKeyStore
from .batch_grader import BatchCoordinator
from .models import SubmissionTask
from .orchestrator import GradingOrchestrator
from .report import format_batch_report, save_summary
from .scorer import SubmissionScorer

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)


def load_tasks(tasks_path: Path, assignment_id: str) -> List[SubmissionTask]:
    """
    Read submission tasks from a YAML list.

    Each entry needs student_id, student_name and document, where document is a
    URL, file:// URL, base64 data URL or path.
    """
    with open(tasks_path, 'r') as f:
        entries = yaml.safe_load(f) or []
    if not isinstance(entries, list):
        raise ValueError(f"Tasks file {tasks_path} must contain a list")

    tasks = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"Task {i} must be a mapping")
        missing = [k for k in ('student_id', 'student_name', 'document') if not entry.get(k)]
        if missing:
            raise ValueError(f"Task {i} is missing {', '.join(missing)}")
        tasks.append(SubmissionTask(
            assignment_id=assignment_id,
            student_id=str(entry['student_id']),
            student_name=str(entry['student_name']),
            document_ref=parse_document_ref(str(entry['document'])),
        ))
    return tasks


def build_coordinator(config: ConfigType, store_path: Path, args: argparse.Namespace) -> BatchCoordinator:
    """Wire store, extractor, scorer and orchestrator together."""
    store = AnswerKeyStore(store_path)
    extractor = DocumentExtractor(policy=policy_from_config(config))
    scorer = SubmissionScorer(configs=config, model=args.model)
    orchestrator = GradingOrchestrator(store=store, extractor=extractor, scorer=scorer)
    return BatchCoordinator(
        orchestrator=orchestrator,
        configs=config,
        max_concurrent=args.max_concurrent,
        timeout=args.timeout,
        show_progress=False if args.no_progress else None,
    )


def main():
    """Main entry point for gradeflow-batch command."""
    parser = argparse.ArgumentParser(
        description='Grade all submissions of an assignment against its stored answer key',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Grade the submissions listed in tasks.yaml
  gradeflow-batch --assignment-id 12345 --tasks tasks.yaml

  # Use a specific answer key store and model
  gradeflow-batch -a 12345 -t tasks.yaml --store worksheets.yaml --model gpt-4.1

  # Limit concurrency and per-submission time
  gradeflow-batch -a 12345 -t tasks.yaml --max-concurrent 2 --timeout 120

tasks.yaml:
  - student_id: "1001"
    student_name: Ada Lovelace
    document: https://example.com/submissions/ada.pdf
  - student_id: "1002"
    student_name: Alan Turing
    document: file:///srv/submissions/alan.pdf
        """
    )

    parser.add_argument('--assignment-id', '-a', required=True, help='Assignment to grade')
    parser.add_argument('--tasks', '-t', type=Path, required=True,
                        help='YAML file listing the submissions to grade')
    parser.add_argument('--store', type=Path, default=None,
                        help='Answer key store file (default: grading.store_path from config)')
    parser.add_argument('--config', '-c', type=Path, action='append', default=None,
                        help='Config file to load instead of config/*.yaml (repeatable)')
    parser.add_argument('--summary', '-o', type=Path, default=None,
                        help='Path to save summary YAML file (default: grading_summary_TIMESTAMP.yaml)')
    parser.add_argument('--model', '-m', type=str, default=None,
                        help='OpenAI model to use (overrides config value)')
    parser.add_argument('--max-concurrent', '-n', type=int, default=None,
                        help='Maximum number of concurrent grading tasks (overrides config value)')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Seconds allowed per submission (overrides config value)')
    parser.add_argument('--no-progress', action='store_true', help='Hide the progress bar')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.tasks.is_file():
        LOG.error(f"Tasks file does not exist: {args.tasks}")
        sys.exit(1)

    try:
        config = load_configs(*[str(p) for p in args.config]) if args.config else load_all_configs()
    except Exception as e:
        LOG.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    try:
        tasks = load_tasks(args.tasks, args.assignment_id)
    except (OSError, yaml.YAMLError, ValueError) as e:
        LOG.error(f"Failed to read tasks: {e}")
        sys.exit(1)

    if not tasks:
        LOG.error("No submissions to grade")
        sys.exit(1)

    store_path = args.store or Path(get_config("grading.store_path", config, default="worksheet-assignments.yaml"))

    try:
        coordinator = build_coordinator(config, store_path, args)
    except Exception as e:
        LOG.error(f"Failed to initialize grading pipeline: {e}")
        sys.exit(1)

    LOG.info(f"Grading {len(tasks)} submissions for assignment {args.assignment_id}")
    report = coordinator.grade_batch_sync(args.assignment_id, tasks)

    if args.summary is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        summary_path = Path(f"grading_summary_{timestamp}.yaml")
    else:
        summary_path = args.summary

    try:
        save_summary(report, summary_path)
    except OSError as e:
        LOG.error(f"Failed to save summary: {e}")

    print(format_batch_report(report))
    print(f"Summary saved to: {summary_path}")


if __name__ == "__main__":
    main()
