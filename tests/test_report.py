"""Tests for report rendering and YAML summaries."""

import yaml

from conftest import ASSIGNMENT_ID, make_task
from gradeflow.tools.grading_pipeline.models import (
    BatchReport, GradingOutcome, LearningRecommendations, SectionScore
)
from gradeflow.tools.grading_pipeline.report import format_batch_report, format_outcome, save_summary


def make_success(student_id, name, score, scaffold=False, accelerate=False):
    return GradingOutcome(
        student_id=student_id,
        student_name=name,
        assignment_id=ASSIGNMENT_ID,
        score=score,
        total_possible=100,
        percentage=score,
        section_scores=[
            SectionScore(section_name="Fractions", points_earned=score / 2, points_possible=50,
                         feedback="Nice simplification."),
            SectionScore(section_name="Word Problems", points_earned=score / 2, points_possible=50,
                         feedback="Show your units."),
        ],
        overall_feedback="Solid effort.",
        recommendations=LearningRecommendations(
            needs_scaffolding=scaffold,
            scaffolding_areas=["Equivalent fractions"] if scaffold else [],
            ready_for_acceleration=accelerate,
            acceleration_areas=["Mixed numbers"] if accelerate else [],
            next_steps="Practice two problems a day.",
        ),
    )


def make_report():
    return BatchReport.from_outcomes(ASSIGNMENT_ID, [
        make_success("ada", "Ada Lovelace", 100, accelerate=True),
        make_success("alan", "Alan Turing", 60, scaffold=True),
        GradingOutcome.failure(make_task("grace", "Grace Hopper"), "Scoring failed: provider unavailable"),
    ])


def test_format_outcome():
    text = format_outcome(make_success("alan", "Alan Turing", 60, scaffold=True))

    assert "Student: Alan Turing (alan)" in text
    assert "OVERALL SCORE: 60/100 (60%)" in text
    assert "  Fractions: 30/50 points\n    Feedback: Nice simplification." in text
    assert "Areas needing support: Equivalent fractions" in text
    assert "Ready for advancement" not in text
    assert "STATUS: FAILED" not in text


def test_format_failed_outcome():
    outcome = GradingOutcome.failure(make_task("grace", "Grace Hopper"), "Scoring failed: timeout")
    text = format_outcome(outcome)

    assert "STATUS: FAILED" in text
    assert "OVERALL SCORE: 0/0 (0%)" in text
    assert "(no section scores)" in text
    assert "Scoring failed: timeout" in text


def test_format_batch_report():
    text = format_batch_report(make_report())

    assert "Total submissions: 3" in text
    assert "Successfully graded: 2" in text
    assert "Failed: 1" in text
    assert "Average score: 80.0%" in text
    assert "Ada Lovelace (ada): 100/100 (100%)" in text
    assert "Grace Hopper (grace): Scoring failed: provider unavailable" in text
    assert "Needs additional support:\n  Alan Turing: Equivalent fractions" in text
    assert "Ready for acceleration:\n  Ada Lovelace: Mixed numbers" in text


def test_save_summary(tmp_path):
    summary_path = tmp_path / "summary.yaml"
    save_summary(make_report(), summary_path)

    with open(summary_path) as f:
        data = yaml.safe_load(f)

    summary = data['grading_summary']
    assert summary['total_submissions'] == 3
    assert summary['successful'] == 2
    assert summary['failed'] == 1
    assert summary['average_percentage'] == 80
    assert summary['needs_scaffolding'] == ["alan"]
    assert summary['ready_for_acceleration'] == ["ada"]
    assert [s['student_id'] for s in data['submissions']] == ["ada", "alan", "grace"]
    assert data['submissions'][2]['failure_reason'] == "Scoring failed: provider unavailable"
    assert 'failure_reason' not in data['submissions'][0]
