from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import StorageError
from app.models import Project, Task, User

logger = logging.getLogger("app.directory")

UNKNOWN_NAME = "Unknown"


class Directory(Protocol):
    """Read side of the platform's user/project/task registry."""

    def project_names(self, project_ids: Iterable[int]) -> dict[int, str]:
        raise NotImplementedError

    def task_titles(self, task_ids: Iterable[int]) -> dict[int, str]:
        raise NotImplementedError

    def user_names(self, user_ids: Iterable[int]) -> dict[int, str]:
        raise NotImplementedError

    def project_id_for_task(self, task_id: int) -> int | None:
        """Owning project of a task; raises LookupError for an unknown task."""

        raise NotImplementedError

    def update_task_actual_hours(self, task_id: int, hours: Decimal) -> None:
        raise NotImplementedError


class SqlDirectory:
    def __init__(self, db: Session):
        self.db = db

    def project_names(self, project_ids: Iterable[int]) -> dict[int, str]:
        ids = sorted(set(project_ids))
        if not ids:
            return {}
        rows = self._execute(select(Project.id, Project.name).where(Project.id.in_(ids)))
        return {row.id: row.name for row in rows}

    def task_titles(self, task_ids: Iterable[int]) -> dict[int, str]:
        ids = sorted(set(task_ids))
        if not ids:
            return {}
        rows = self._execute(select(Task.id, Task.title).where(Task.id.in_(ids)))
        return {row.id: row.title for row in rows}

    def user_names(self, user_ids: Iterable[int]) -> dict[int, str]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        rows = self._execute(select(User.id, User.first_name, User.last_name).where(User.id.in_(ids)))
        return {row.id: f"{row.first_name} {row.last_name}".strip() for row in rows}

    def project_id_for_task(self, task_id: int) -> int | None:
        try:
            task = self.db.get(Task, task_id)
        except SQLAlchemyError as exc:
            raise StorageError("task lookup failed") from exc
        if task is None:
            raise LookupError(f"task {task_id} not found")
        return task.project_id

    def update_task_actual_hours(self, task_id: int, hours: Decimal) -> None:
        try:
            task = self.db.get(Task, task_id)
            if task is None:
                logger.warning("task_actual_hours_target_missing", extra={"task_id": task_id})
                return
            task.actual_hours = hours
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("task actual hours update failed") from exc

    def _execute(self, statement):  # type: ignore[no-untyped-def]
        try:
            return self.db.execute(statement).all()
        except SQLAlchemyError as exc:
            raise StorageError("directory lookup failed") from exc


def get_directory(db: Session = Depends(get_db)) -> Directory:
    return SqlDirectory(db)
