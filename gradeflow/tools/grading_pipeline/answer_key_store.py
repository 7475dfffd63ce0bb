"""Durable store of worksheet answer keys, rubrics and assignment links."""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from .models import AssignmentLink, Rubric, RubricNotFound, WorksheetRecord

LOG = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ('worksheet_id', 'created_at')


class StorageError(Exception):
    """The backing store could not be read or written."""


class AnswerKeyStore:
    """
    Worksheet records keyed by worksheet id, plus an assignment id -> worksheet id index.

    The whole store is a single YAML document. Every mutation is a read-modify-write
    under one lock, and the file is replaced atomically so readers never see a
    partially written store.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._worksheets: Dict[str, WorksheetRecord] = {}
        self._assignment_index: Dict[str, str] = {}
        self._loaded = False

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        if self.path.exists():
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
                if not isinstance(data, dict):
                    raise StorageError(f"Store file {self.path} must contain a mapping")
                self._worksheets = {
                    worksheet_id: WorksheetRecord.model_validate(record)
                    for worksheet_id, record in (data.get('worksheets') or {}).items()
                }
                self._assignment_index = dict(data.get('assignment_index') or {})
            except (OSError, yaml.YAMLError, ValidationError) as e:
                raise StorageError(f"Could not load store {self.path}: {e}") from e
            LOG.debug("Loaded %d worksheets from %s", len(self._worksheets), self.path)
        else:
            LOG.info("Creating new answer key store at %s", self.path)
            self._save(self._worksheets, self._assignment_index)
        self._loaded = True

    def _save(self, worksheets: Dict[str, WorksheetRecord], assignment_index: Dict[str, str]) -> None:
        data = {
            'worksheets': {
                worksheet_id: record.model_dump(mode='json')
                for worksheet_id, record in worksheets.items()
            },
            'assignment_index': dict(assignment_index),
        }
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Could not write store {self.path}: {e}") from e

    def _commit(self, worksheets: Dict[str, WorksheetRecord], assignment_index: Dict[str, str]) -> None:
        """Persist new maps, then swap them in. A failed write leaves the store unchanged."""
        self._save(worksheets, assignment_index)
        self._worksheets = worksheets
        self._assignment_index = assignment_index

    def _index_without(self, worksheet_id: str) -> Dict[str, str]:
        return {a: w for a, w in self._assignment_index.items() if w != worksheet_id}

    def put(self, record: WorksheetRecord) -> None:
        """Insert or replace a worksheet record."""
        with self._lock:
            self._ensure_loaded()
            existing = self._worksheets.get(record.worksheet_id)
            if record.assignment_link is None and existing is not None and existing.assignment_link:
                record = record.model_copy(update={'assignment_link': existing.assignment_link})

            worksheets = {**self._worksheets, record.worksheet_id: record}
            index = self._index_without(record.worksheet_id)
            if record.assignment_link:
                index[record.assignment_link.assignment_id] = record.worksheet_id
            self._commit(worksheets, index)
        LOG.info("Stored worksheet %s (%s)", record.worksheet_id, record.title)

    def link_to_assignment(self, worksheet_id: str, assignment_id: str,
                           course_id: str, course_name: Optional[str] = None) -> bool:
        """Attach a worksheet to a published assignment. Returns False for unknown worksheets."""
        with self._lock:
            self._ensure_loaded()
            record = self._worksheets.get(worksheet_id)
            if record is None:
                LOG.warning("Cannot link unknown worksheet %s to assignment %s", worksheet_id, assignment_id)
                return False

            link = AssignmentLink(assignment_id=assignment_id, course_id=course_id, course_name=course_name)
            worksheets = {**self._worksheets, worksheet_id: record.model_copy(update={'assignment_link': link})}
            index = self._index_without(worksheet_id)
            index[assignment_id] = worksheet_id
            self._commit(worksheets, index)
        LOG.info("Linked worksheet %s to assignment %s", worksheet_id, assignment_id)
        return True

    def get_rubric(self, assignment_id: str) -> Union[Rubric, RubricNotFound]:
        """Resolve the answer key and rubric graded against for an assignment."""
        with self._lock:
            self._ensure_loaded()
            worksheet_id = self._assignment_index.get(assignment_id)
            record = self._worksheets.get(worksheet_id) if worksheet_id else None

        if worksheet_id is None:
            return RubricNotFound(assignment_id=assignment_id, reason="no worksheet is linked to this assignment")
        if record is None:
            return RubricNotFound(assignment_id=assignment_id,
                                  reason=f"linked worksheet {worksheet_id} no longer exists")
        if not (record.answer_key_content and record.answer_key_content.strip()):
            return RubricNotFound(assignment_id=assignment_id,
                                  reason=f"worksheet {worksheet_id} has no answer key")
        if not record.total_points or record.total_points <= 0:
            return RubricNotFound(assignment_id=assignment_id,
                                  reason=f"worksheet {worksheet_id} has no total points")

        sections = list(record.rubric)
        section_total = sum(s.points_possible for s in sections)
        if sections and section_total != record.total_points:
            LOG.warning("Rubric sections of worksheet %s sum to %s but total points is %s",
                        worksheet_id, section_total, record.total_points)

        return Rubric(
            assignment_id=assignment_id,
            worksheet_id=worksheet_id,
            title=record.title,
            answer_key_content=record.answer_key_content,
            sections=sections,
            total_points=record.total_points,
        )

    def delete(self, worksheet_id: str) -> bool:
        """Remove a worksheet and its assignment index entries."""
        with self._lock:
            self._ensure_loaded()
            if worksheet_id not in self._worksheets:
                return False
            worksheets = {k: v for k, v in self._worksheets.items() if k != worksheet_id}
            self._commit(worksheets, self._index_without(worksheet_id))
        LOG.info("Deleted worksheet %s", worksheet_id)
        return True

    def update_worksheet(self, worksheet_id: str, **updates: Any) -> bool:
        """Apply field updates to an existing worksheet. Returns False if it does not exist."""
        for field_name in updates:
            if field_name in IMMUTABLE_FIELDS:
                raise ValueError(f"{field_name} cannot be updated")
            if field_name not in WorksheetRecord.model_fields:
                raise ValueError(f"Unknown worksheet field {field_name}")
        with self._lock:
            self._ensure_loaded()
            record = self._worksheets.get(worksheet_id)
            if record is None:
                return False
            merged = record.model_dump()
            merged.update(updates)
            updated = WorksheetRecord.model_validate(merged)
            index = self._index_without(worksheet_id)
            if updated.assignment_link:
                index[updated.assignment_link.assignment_id] = worksheet_id
            self._commit({**self._worksheets, worksheet_id: updated}, index)
        return True

    def get_worksheet(self, worksheet_id: str) -> Optional[WorksheetRecord]:
        with self._lock:
            self._ensure_loaded()
            return self._worksheets.get(worksheet_id)

    def get_worksheet_by_assignment(self, assignment_id: str) -> Optional[WorksheetRecord]:
        with self._lock:
            self._ensure_loaded()
            worksheet_id = self._assignment_index.get(assignment_id)
            return self._worksheets.get(worksheet_id) if worksheet_id else None

    def list_worksheets(self) -> List[WorksheetRecord]:
        with self._lock:
            self._ensure_loaded()
            return list(self._worksheets.values())

    def get_worksheets_by_course(self, course_id: str) -> List[WorksheetRecord]:
        return [
            w for w in self.list_worksheets()
            if w.assignment_link and w.assignment_link.course_id == course_id
        ]

    def search_worksheets(self, term: str) -> List[WorksheetRecord]:
        """Case-insensitive search over title, subject, grade level, summary and course name."""
        needle = term.lower()
        results = []
        for worksheet in self.list_worksheets():
            haystack = [worksheet.title, worksheet.subject, worksheet.grade_level, worksheet.summary]
            if worksheet.assignment_link:
                haystack.append(worksheet.assignment_link.course_name)
            if any(value and needle in value.lower() for value in haystack):
                results.append(worksheet)
        return results

    def get_recent_worksheets(self, limit: int = 10) -> List[WorksheetRecord]:
        """Newest worksheets first."""
        worksheets = sorted(self.list_worksheets(), key=lambda w: w.created_at, reverse=True)
        return worksheets[:limit]
