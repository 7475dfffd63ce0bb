"""Pydantic models for worksheets, rubrics and grading outcomes."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from gradeflow.libs.extraction.models import DocumentRef


def now_iso() -> str:
    return datetime.now().isoformat()


class RubricSection(BaseModel):
    """One graded section of a worksheet."""
    section_name: str = Field(description="Name of the section")
    points_possible: float = Field(ge=0, description="Maximum points for this section")


class AssignmentLink(BaseModel):
    """Classroom assignment a worksheet was published as."""
    assignment_id: str
    course_id: str
    course_name: Optional[str] = None


class WorksheetRecord(BaseModel):
    """Stored answer key, rubric and assignment linkage for one generated worksheet."""
    worksheet_id: str = Field(description="Primary key, e.g. the canonical worksheet URL")
    answer_key_content: Optional[str] = Field(default=None, description="Answer key text or HTML")
    title: str = ""
    subject: Optional[str] = None
    grade_level: Optional[str] = None
    summary: Optional[str] = None
    rubric: List[RubricSection] = Field(default_factory=list)
    total_points: Optional[int] = None
    assignment_link: Optional[AssignmentLink] = None
    created_at: str = Field(default_factory=now_iso)

    @property
    def is_scoreable(self) -> bool:
        """Usable for grading only when both the answer key and the total are present."""
        return bool(self.answer_key_content and self.answer_key_content.strip()) \
            and bool(self.total_points and self.total_points > 0)


class Rubric(BaseModel):
    """Read-only grading reference resolved for one assignment."""
    assignment_id: str
    worksheet_id: str
    title: str = ""
    answer_key_content: str
    sections: List[RubricSection] = Field(default_factory=list)
    total_points: int

    def points_for(self, section_name: str) -> Optional[float]:
        """Maximum points of a section, matched case-insensitively."""
        wanted = section_name.strip().lower()
        for section in self.sections:
            if section.section_name.strip().lower() == wanted:
                return section.points_possible
        return None


class RubricNotFound(BaseModel):
    """Why no rubric could be resolved for an assignment."""
    assignment_id: str
    reason: str

    def describe(self) -> str:
        return f"No rubric found for assignment {self.assignment_id}: {self.reason}"


class SubmissionTask(BaseModel):
    """One student's submission to grade."""
    assignment_id: str
    student_id: str
    student_name: str
    document_ref: DocumentRef


class SectionScore(BaseModel):
    """Score and feedback for one rubric section."""
    section_name: str = Field(description="Name of the section")
    points_earned: float = Field(description="Points earned in this section")
    points_possible: float = Field(description="Total possible points for this section")
    feedback: str = Field(description="Brief, constructive feedback for this section (1-2 sentences)")


class LearningRecommendations(BaseModel):
    """Personalized learning recommendations."""
    needs_scaffolding: bool = Field(description="Whether the student would benefit from additional support")
    scaffolding_areas: List[str] = Field(default_factory=list, description="Specific areas where support is needed")
    ready_for_acceleration: bool = Field(description="Whether the student is ready for more advanced material")
    acceleration_areas: List[str] = Field(
        default_factory=list, description="Specific areas where acceleration could be beneficial"
    )
    next_steps: str = Field(description="General recommendation for next steps (1-2 sentences)")

    @classmethod
    def no_signal(cls, next_steps: str = "Unable to provide recommendations due to grading error."
                  ) -> "LearningRecommendations":
        return cls(needs_scaffolding=False, ready_for_acceleration=False, next_steps=next_steps)


class ScoreResponse(BaseModel):
    """Structured output requested from the language model."""
    overall_score: float = Field(description="Total score achieved out of total possible points")
    total_possible_points: float = Field(description="Total possible points for the worksheet")
    percentage_score: float = Field(description="Percentage score (0-100)")
    section_scores: List[SectionScore] = Field(description="Breakdown of scores by section")
    overall_feedback: str = Field(description="Overall feedback on the submission (2-3 sentences)")
    learning_recommendations: LearningRecommendations = Field(description="Personalized learning recommendations")


class ScoreResult(BaseModel):
    """Validated scorer output; score always lies in [0, total_possible]."""
    score: float
    total_possible: float
    percentage: int
    section_scores: List[SectionScore]
    overall_feedback: str
    recommendations: LearningRecommendations


def percentage_of(score: float, total: float) -> int:
    """Whole percentage, rounding halves up."""
    if total <= 0:
        return 0
    return int(100 * score / total + 0.5)


class GradingOutcome(BaseModel):
    """Result of grading one submission; failures share the same shape."""
    student_id: str
    student_name: str
    assignment_id: str
    graded_at: str = Field(default_factory=now_iso)
    success: bool = True
    score: float = 0
    total_possible: float = 0
    percentage: int = 0
    section_scores: List[SectionScore] = Field(default_factory=list)
    overall_feedback: str = ""
    recommendations: LearningRecommendations = Field(default_factory=LearningRecommendations.no_signal)
    failure_reason: Optional[str] = None
    extraction_warning: Optional[str] = None

    @classmethod
    def from_score(cls, task: SubmissionTask, result: ScoreResult,
                   extraction_warning: Optional[str] = None) -> "GradingOutcome":
        feedback = result.overall_feedback
        if extraction_warning:
            feedback = f"[Extraction issue: {extraction_warning}] {feedback}".strip()
        return cls(
            student_id=task.student_id,
            student_name=task.student_name,
            assignment_id=task.assignment_id,
            success=True,
            score=result.score,
            total_possible=result.total_possible,
            percentage=result.percentage,
            section_scores=result.section_scores,
            overall_feedback=feedback,
            recommendations=result.recommendations,
            extraction_warning=extraction_warning,
        )

    @classmethod
    def failure(cls, task: SubmissionTask, reason: str,
                extraction_warning: Optional[str] = None) -> "GradingOutcome":
        return cls(
            student_id=task.student_id,
            student_name=task.student_name,
            assignment_id=task.assignment_id,
            success=False,
            overall_feedback=reason,
            failure_reason=reason,
            extraction_warning=extraction_warning,
        )


class FlaggedStudent(BaseModel):
    """Student singled out by a learning recommendation."""
    student_id: str
    student_name: str
    areas: List[str] = Field(default_factory=list)


class BatchReport(BaseModel):
    """Aggregate over every outcome of one batch."""
    assignment_id: str
    outcomes: List[GradingOutcome]
    success_count: int
    failure_count: int
    average_percentage: float
    scaffolding_list: List[FlaggedStudent]
    acceleration_list: List[FlaggedStudent]
    generated_at: str = Field(default_factory=now_iso)

    @classmethod
    def from_outcomes(cls, assignment_id: str, outcomes: List[GradingOutcome]) -> "BatchReport":
        ordered = sorted(outcomes, key=lambda o: (o.student_id, o.student_name))
        successes = [o for o in ordered if o.success]
        average = sum(o.percentage for o in successes) / len(successes) if successes else 0.0
        return cls(
            assignment_id=assignment_id,
            outcomes=ordered,
            success_count=len(successes),
            failure_count=len(ordered) - len(successes),
            average_percentage=average,
            scaffolding_list=[
                FlaggedStudent(student_id=o.student_id, student_name=o.student_name,
                               areas=o.recommendations.scaffolding_areas)
                for o in successes if o.recommendations.needs_scaffolding
            ],
            acceleration_list=[
                FlaggedStudent(student_id=o.student_id, student_name=o.student_name,
                               areas=o.recommendations.acceleration_areas)
                for o in successes if o.recommendations.ready_for_acceleration
            ],
        )

    @property
    def failures(self) -> List[GradingOutcome]:
        return [o for o in self.outcomes if not o.success]
