"""Human-readable rendering and YAML summaries of grading outcomes."""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from .models import BatchReport, GradingOutcome

LOG = logging.getLogger(__name__)


def _points(value: float) -> str:
    return f"{value:g}"


def format_outcome(outcome: GradingOutcome) -> str:
    """Render a single grading outcome as a report."""
    sections = "\n\n".join(
        f"  {s.section_name}: {_points(s.points_earned)}/{_points(s.points_possible)} points\n"
        f"    Feedback: {s.feedback}"
        for s in outcome.section_scores
    ) or "  (no section scores)"

    recs = outcome.recommendations
    scaffolding = ""
    if recs.needs_scaffolding:
        scaffolding = f"\nAreas needing support: {', '.join(recs.scaffolding_areas)}"
    acceleration = ""
    if recs.ready_for_acceleration:
        acceleration = f"\nReady for advancement in: {', '.join(recs.acceleration_areas)}"

    status = "" if outcome.success else "\nSTATUS: FAILED"

    return f"""GRADING REPORT
==============
Student: {outcome.student_name} ({outcome.student_id})
Assignment: {outcome.assignment_id}
Graded: {outcome.graded_at}{status}

OVERALL SCORE: {_points(outcome.score)}/{_points(outcome.total_possible)} ({outcome.percentage}%)

SECTION BREAKDOWN:
{sections}

OVERALL FEEDBACK:
{outcome.overall_feedback}

LEARNING RECOMMENDATIONS:
{recs.next_steps}{scaffolding}{acceleration}
"""


def format_batch_report(report: BatchReport) -> str:
    """Render a batch report as a summary for teachers."""
    lines = [
        "=" * 60,
        f"Batch Grading Report: assignment {report.assignment_id}",
        "=" * 60,
        f"Total submissions: {len(report.outcomes)}",
        f"Successfully graded: {report.success_count}",
        f"Failed: {report.failure_count}",
        f"Average score: {report.average_percentage:.1f}%",
    ]

    successful = [o for o in report.outcomes if o.success]
    if successful:
        lines.append("\nScores:")
        for outcome in successful:
            flag = " (extraction issue)" if outcome.extraction_warning else ""
            lines.append(f"  {outcome.student_name} ({outcome.student_id}): "
                         f"{_points(outcome.score)}/{_points(outcome.total_possible)} "
                         f"({outcome.percentage}%){flag}")

    if report.failures:
        lines.append("\nFailed submissions:")
        for outcome in report.failures:
            lines.append(f"  {outcome.student_name} ({outcome.student_id}): {outcome.failure_reason}")

    if report.scaffolding_list:
        lines.append("\nNeeds additional support:")
        for student in report.scaffolding_list:
            lines.append(f"  {student.student_name}: {', '.join(student.areas) or 'general'}")

    if report.acceleration_list:
        lines.append("\nReady for acceleration:")
        for student in report.acceleration_list:
            lines.append(f"  {student.student_name}: {', '.join(student.areas) or 'general'}")

    return "\n".join(lines) + "\n"


def summary_dict(report: BatchReport) -> Dict[str, Any]:
    """Convert a batch report to a dictionary for YAML serialization."""
    return {
        'grading_summary': {
            'assignment_id': report.assignment_id,
            'timestamp': report.generated_at,
            'total_submissions': len(report.outcomes),
            'successful': report.success_count,
            'failed': report.failure_count,
            'average_percentage': report.average_percentage,
            'needs_scaffolding': [s.student_id for s in report.scaffolding_list],
            'ready_for_acceleration': [s.student_id for s in report.acceleration_list],
        },
        'submissions': [o.model_dump(mode='json', exclude_none=True) for o in report.outcomes],
    }


def save_summary(report: BatchReport, output_path: Path) -> None:
    """Save the batch report as a YAML summary file."""
    with open(output_path, 'w') as f:
        yaml.dump(summary_dict(report), f, default_flow_style=False, sort_keys=False)

    LOG.info(f"Summary saved to {output_path}")
