from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ClassInfo:
    """A taught class with its fee configuration."""

    class_id: int
    class_type: str
    grade: str
    category: str
    monthly_fee: float
    is_free_class: bool = False
    is_active: bool = True

    def summary(self) -> dict:
        return {
            "id": self.class_id,
            "grade": self.grade,
            "category": self.category,
            "monthlyFee": self.monthly_fee,
            "isFreeClass": self.is_free_class,
        }
