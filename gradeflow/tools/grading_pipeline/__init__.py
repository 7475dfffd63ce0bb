"""Batch grading pipeline: answer key storage, scoring, orchestration and reporting."""

from .answer_key_store import AnswerKeyStore, StorageError
from .batch_grader import BatchCoordinator
from .models import (
    BatchReport,
    GradingOutcome,
    LearningRecommendations,
    Rubric,
    RubricNotFound,
    RubricSection,
    SectionScore,
    SubmissionTask,
    WorksheetRecord,
)
from .orchestrator import GradingOrchestrator
from .report import format_batch_report, format_outcome, save_summary
from .scorer import ScoringError, SubmissionScorer

__all__ = [
    'AnswerKeyStore',
    'StorageError',
    'BatchCoordinator',
    'BatchReport',
    'GradingOutcome',
    'LearningRecommendations',
    'Rubric',
    'RubricNotFound',
    'RubricSection',
    'SectionScore',
    'SubmissionTask',
    'WorksheetRecord',
    'GradingOrchestrator',
    'format_batch_report',
    'format_outcome',
    'save_summary',
    'ScoringError',
    'SubmissionScorer',
]
