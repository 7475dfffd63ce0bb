"""Shared fixtures for grading pipeline tests."""

import asyncio

import pytest

from gradeflow.libs.extraction import ContentExtractor, ExtractedText, LocalDocument
from gradeflow.tools.grading_pipeline.answer_key_store import AnswerKeyStore
from gradeflow.tools.grading_pipeline.models import (
    LearningRecommendations, RubricSection, ScoreResponse, SectionScore, SubmissionTask, WorksheetRecord
)
from gradeflow.tools.grading_pipeline.scorer import normalize_response

ASSIGNMENT_ID = "assignment-1"
WORKSHEET_ID = "https://example.com/worksheets/fractions.pdf"


class ScriptedExtractor(ContentExtractor):
    """Extractor returning canned text per document path.

    Values may be a string (extracted text), an Exception (raised) or a float
    (seconds to hang before returning text).
    """

    def __init__(self, script):
        self.script = script
        self.calls = []

    async def extract(self, ref):
        self.calls.append(ref.describe())
        value = self.script.get(ref.describe(), "1. 3/4\n2. 12 apples")
        if isinstance(value, Exception):
            raise value
        if isinstance(value, float):
            await asyncio.sleep(value)
            value = "late answers"
        return ExtractedText(text=value, source=ref.describe())


class ScriptedScorer:
    """Scorer returning canned responses per student name.

    Values may be (fractions, word_problems, needs_scaffolding, ready_for_acceleration)
    tuples or an Exception to raise. Unknown students score zero.
    """

    def __init__(self, script=None):
        self.script = script or {}
        self.texts = {}

    async def score(self, extracted_text, rubric, student_name):
        self.texts[student_name] = extracted_text
        value = self.script.get(student_name, (0, 0, False, False))
        if isinstance(value, Exception):
            raise value
        fractions, word_problems, scaffold, accelerate = value
        response = ScoreResponse(
            overall_score=fractions + word_problems,
            total_possible_points=100,
            percentage_score=fractions + word_problems,
            section_scores=[
                SectionScore(section_name="Fractions", points_earned=fractions, points_possible=50,
                             feedback="Fractions feedback."),
                SectionScore(section_name="Word Problems", points_earned=word_problems, points_possible=50,
                             feedback="Word problem feedback."),
            ],
            overall_feedback=f"Feedback for {student_name}.",
            learning_recommendations=LearningRecommendations(
                needs_scaffolding=scaffold,
                scaffolding_areas=["Fractions"] if scaffold else [],
                ready_for_acceleration=accelerate,
                acceleration_areas=["Word Problems"] if accelerate else [],
                next_steps="Keep practicing.",
            ),
        )
        return normalize_response(response, rubric)


def make_task(student_id, student_name=None, document=None):
    return SubmissionTask(
        assignment_id=ASSIGNMENT_ID,
        student_id=student_id,
        student_name=student_name or student_id.title(),
        document_ref=LocalDocument(path=document or f"/submissions/{student_id}.pdf"),
    )


@pytest.fixture
def linked_store(tmp_path):
    store = AnswerKeyStore(tmp_path / "worksheets.yaml")
    store.put(WorksheetRecord(
        worksheet_id=WORKSHEET_ID,
        answer_key_content="1. 3/4\n2. 12 apples",
        title="Fractions Practice",
        subject="Math",
        rubric=[
            RubricSection(section_name="Fractions", points_possible=50),
            RubricSection(section_name="Word Problems", points_possible=50),
        ],
        total_points=100,
    ))
    store.link_to_assignment(WORKSHEET_ID, ASSIGNMENT_ID, "course-1", "Math 5")
    return store


@pytest.fixture
def empty_store(tmp_path):
    return AnswerKeyStore(tmp_path / "empty.yaml")


