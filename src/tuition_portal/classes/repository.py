from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..students.model import Student
from .model import ClassInfo


class ClassRepository(Protocol):
    def get_by_id(self, class_id: int) -> Optional[ClassInfo]:
        raise NotImplementedError

    def list_enrolled_students(self, class_id: int) -> Sequence[Student]:
        raise NotImplementedError

    def list_monitor_ids(self, class_id: int) -> set[int]:
        raise NotImplementedError
