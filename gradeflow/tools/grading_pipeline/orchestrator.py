"""Drive one submission through rubric resolution, extraction and scoring."""

import enum
import logging
from typing import Optional, Tuple

from gradeflow.libs.extraction import ContentExtractor, ExtractionError
from .answer_key_store import AnswerKeyStore
from .models import GradingOutcome, Rubric, RubricNotFound, SubmissionTask
from .scorer import ScoringError, SubmissionScorer

LOG = logging.getLogger(__name__)

EMPTY_EXTRACTION_TEXT = (
    "Unable to extract text from the submitted document. The document may be an "
    "image-only PDF or have formatting issues."
)


class GradingStage(enum.Enum):
    RESOLVE_RUBRIC = "resolve_rubric"
    EXTRACT = "extract"
    SCORE = "score"
    SUCCESS = "success"
    FAILURE = "failure"


class GradingOrchestrator:
    """
    Grade a single submission.

    Extraction failures degrade to scoring a placeholder text so a reviewable
    outcome is always produced; scoring failures end in a FAILURE outcome.
    """

    def __init__(self, store: AnswerKeyStore, extractor: ContentExtractor, scorer: SubmissionScorer):
        self.store = store
        self.extractor = extractor
        self.scorer = scorer

    def resolve_rubric(self, assignment_id: str):
        LOG.debug("%s: %s", GradingStage.RESOLVE_RUBRIC.name, assignment_id)
        return self.store.get_rubric(assignment_id)

    async def grade(self, task: SubmissionTask, rubric: Optional[Rubric] = None) -> GradingOutcome:
        """Grade one submission, resolving the rubric through the store unless given."""
        if rubric is None:
            resolved = self.resolve_rubric(task.assignment_id)
            if isinstance(resolved, RubricNotFound):
                LOG.warning("%s: %s", GradingStage.FAILURE.name, resolved.describe())
                return GradingOutcome.failure(task, resolved.describe())
            rubric = resolved

        text, warning = await self._extract(task)

        LOG.debug("%s: %s (%d chars)", GradingStage.SCORE.name, task.student_id, len(text))
        try:
            result = await self.scorer.score(text, rubric, task.student_name)
        except ScoringError as e:
            LOG.warning("%s: scoring %s failed: %s", GradingStage.FAILURE.name, task.student_id, e)
            return GradingOutcome.failure(task, f"Scoring failed: {e}", extraction_warning=warning)

        outcome = GradingOutcome.from_score(task, result, extraction_warning=warning)
        LOG.info("%s: %s scored %s/%s (%d%%)", GradingStage.SUCCESS.name, task.student_name,
                 outcome.score, outcome.total_possible, outcome.percentage)
        return outcome

    async def _extract(self, task: SubmissionTask) -> Tuple[str, Optional[str]]:
        """Return the text to score and, when extraction degraded, a warning."""
        LOG.debug("%s: %s from %s", GradingStage.EXTRACT.name, task.student_id, task.document_ref.describe())
        try:
            extracted = await self.extractor.extract(task.document_ref)
        except ExtractionError as e:
            LOG.warning("Extraction failed for %s, scoring placeholder: %s", task.student_id, e)
            warning = f"document extraction failed ({e})"
            return (f"Document extraction failed: {e}. Unable to extract submission content.", warning)

        if extracted.is_empty:
            LOG.warning("Extraction returned empty content for %s", task.student_id)
            return EMPTY_EXTRACTION_TEXT, "no text could be extracted from the document"
        return extracted.text, None
