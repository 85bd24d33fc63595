from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Student:
    """Student profile linked to a login account."""

    student_id: int
    user_id: Optional[int]
    student_code: str
    first_name: str
    last_name: str
    surname: str
    email: str
    contact_number: str
    payment_status: str = "admissioned"
    free_class_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def has_free_membership(self, class_id: int) -> bool:
        return int(class_id) in self.free_class_ids

    def public_dict(self) -> dict:
        return {
            "id": self.student_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "surname": self.surname,
            "fullName": self.full_name,
            "studentId": self.student_code,
            "email": self.email,
            "contactNumber": self.contact_number,
            "paymentStatus": self.payment_status,
        }
