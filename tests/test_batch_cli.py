"""Tests for the gradeflow-batch command."""

import sys

import pytest
import yaml
from unittest.mock import patch

from gradeflow.libs.extraction import InlineDocument, LocalDocument, RemoteDocument
from gradeflow.tools.grading_pipeline import batch_cli
from gradeflow.tools.grading_pipeline.models import BatchReport, GradingOutcome


def write_tasks(path, entries):
    path.write_text(yaml.dump(entries))
    return path


def test_load_tasks(tmp_path):
    tasks_path = write_tasks(tmp_path / "tasks.yaml", [
        {"student_id": 1001, "student_name": "Ada Lovelace", "document": "https://example.com/ada.pdf"},
        {"student_id": "1002", "student_name": "Alan Turing", "document": "file:///srv/alan.pdf"},
        {"student_id": "1003", "student_name": "Grace Hopper", "document": "data:application/pdf;base64,JVBERi0="},
    ])

    tasks = batch_cli.load_tasks(tasks_path, "a1")

    assert [t.student_id for t in tasks] == ["1001", "1002", "1003"]
    assert all(t.assignment_id == "a1" for t in tasks)
    assert isinstance(tasks[0].document_ref, RemoteDocument)
    assert isinstance(tasks[1].document_ref, LocalDocument)
    assert isinstance(tasks[2].document_ref, InlineDocument)


def test_load_tasks_missing_fields(tmp_path):
    tasks_path = write_tasks(tmp_path / "tasks.yaml", [{"student_id": "1", "document": "a.pdf"}])
    with pytest.raises(ValueError, match="student_name"):
        batch_cli.load_tasks(tasks_path, "a1")


def test_load_tasks_requires_list(tmp_path):
    tasks_path = write_tasks(tmp_path / "tasks.yaml", {"student_id": "1"})
    with pytest.raises(ValueError, match="must contain a list"):
        batch_cli.load_tasks(tasks_path, "a1")


def test_main_grades_and_saves_summary(tmp_path, capsys):
    tasks_path = write_tasks(tmp_path / "tasks.yaml", [
        {"student_id": "1001", "student_name": "Ada Lovelace", "document": "ada.pdf"},
    ])
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump({
        "openai": {"api_key": "test-key", "model": "gpt-4.1-mini"},
        "grading": {"show_progress": False},
    }))
    summary_path = tmp_path / "summary.yaml"
    report = BatchReport.from_outcomes("a1", [
        GradingOutcome(student_id="1001", student_name="Ada Lovelace", assignment_id="a1",
                       score=90, total_possible=100, percentage=90),
    ])

    argv = ["gradeflow-batch", "-a", "a1", "-t", str(tasks_path), "-c", str(config_path),
            "--store", str(tmp_path / "store.yaml"), "-o", str(summary_path)]
    with patch.object(sys, 'argv', argv), \
            patch.object(batch_cli, 'SubmissionScorer') as mock_scorer_class, \
            patch.object(batch_cli.BatchCoordinator, 'grade_batch_sync', return_value=report) as mock_grade:
        batch_cli.main()

    mock_scorer_class.assert_called_once()
    assert mock_grade.call_args[0][0] == "a1"
    assert summary_path.exists()
    out = capsys.readouterr().out
    assert "Ada Lovelace (1001): 90/100 (90%)" in out


def test_main_missing_tasks_file(tmp_path):
    argv = ["gradeflow-batch", "-a", "a1", "-t", str(tmp_path / "missing.yaml")]
    with patch.object(sys, 'argv', argv):
        with pytest.raises(SystemExit) as exc_info:
            batch_cli.main()
    assert exc_info.value.code == 1
