"""Batch grader fanning submissions out to the orchestrator in parallel using async/await."""

import asyncio
import logging
from typing import List, Optional

from tqdm.asyncio import tqdm

from gradeflow.libs.config_loader import ConfigType, get_config
from .models import BatchReport, GradingOutcome, Rubric, RubricNotFound, SubmissionTask
from .orchestrator import GradingOrchestrator

LOG = logging.getLogger(__name__)


class BatchCoordinator:
    """Grade every submission of an assignment concurrently and aggregate the outcomes."""

    def __init__(self, orchestrator: GradingOrchestrator, configs: Optional[ConfigType] = None,
                 max_concurrent: Optional[int] = None, timeout: Optional[float] = None,
                 show_progress: Optional[bool] = None):
        """
        Initialize the batch coordinator.

        Args:
            orchestrator: Grades a single submission
            configs: Configuration dictionary
            max_concurrent: Maximum number of concurrent grading tasks (overrides config)
            timeout: Wall-clock seconds allowed per submission (overrides config)
            show_progress: Whether to show a progress bar (overrides config)
        """
        configs = configs or {}
        self.orchestrator = orchestrator
        self.max_concurrent = max_concurrent or get_config("grading.max_concurrent", configs, default=4)
        self.timeout = timeout or get_config("grading.timeout_seconds", configs, default=300)
        if show_progress is None:
            show_progress = get_config("grading.show_progress", configs, default=True)
        self.show_progress = show_progress

        LOG.info(f"BatchCoordinator initialized with max_concurrent={self.max_concurrent}, timeout={self.timeout}s")

    async def grade_batch(self, assignment_id: str, tasks: List[SubmissionTask]) -> BatchReport:
        """
        Grade all tasks and build the batch report.

        Every task yields exactly one outcome; individual failures never abort the batch.
        """
        resolved = self.orchestrator.resolve_rubric(assignment_id)
        if isinstance(resolved, RubricNotFound):
            reason = resolved.describe()
            LOG.error(reason)
            outcomes = [GradingOutcome.failure(task, reason) for task in tasks]
            return BatchReport.from_outcomes(assignment_id, outcomes)

        LOG.info(f"Grading {len(tasks)} submissions for assignment {assignment_id} "
                 f"against worksheet {resolved.worksheet_id}")

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def grade_with_semaphore(task: SubmissionTask) -> GradingOutcome:
            """Grade a submission with semaphore-controlled concurrency."""
            async with semaphore:
                return await self._grade_one(task, resolved)

        outcomes = await tqdm.gather(
            *[grade_with_semaphore(task) for task in tasks],
            desc="Grading submissions",
            total=len(tasks),
            disable=not self.show_progress,
        )

        report = BatchReport.from_outcomes(assignment_id, list(outcomes))
        LOG.info(f"Batch complete: {report.success_count} succeeded, {report.failure_count} failed, "
                 f"average {report.average_percentage:.1f}%")
        return report

    async def _grade_one(self, task: SubmissionTask, rubric: Rubric) -> GradingOutcome:
        """Grade one task under the per-submission timeout, converting any error to a failure outcome."""
        try:
            return await asyncio.wait_for(self.orchestrator.grade(task, rubric), timeout=self.timeout)
        except asyncio.TimeoutError:
            LOG.warning(f"Grading {task.student_id} timed out after {self.timeout} seconds")
            return GradingOutcome.failure(task, f"Grading timed out after {self.timeout} seconds")
        except Exception as e:  # pylint: disable=broad-except
            import traceback
            LOG.error(f"Unexpected error grading {task.student_id}: {e} " + traceback.format_exc())
            return GradingOutcome.failure(task, f"Unexpected error: {e}")

    def grade_batch_sync(self, assignment_id: str, tasks: List[SubmissionTask]) -> BatchReport:
        """Synchronous wrapper for grade_batch."""
        return asyncio.run(self.grade_batch(assignment_id, tasks))
