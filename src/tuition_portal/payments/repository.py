from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import PaymentStatus
from .model import AdminAction, NewPayment, Payment, PaymentFilter


class PaymentRepository(Protocol):
    def insert(self, payment: NewPayment) -> int:
        """Create the request; raises ``PaymentAlreadyExistsError`` if the month is taken."""

        raise NotImplementedError

    def get(self, payment_id: int) -> Optional[Payment]:
        raise NotImplementedError

    def get_owned(self, payment_id: int, student_id: int) -> Optional[Payment]:
        raise NotImplementedError

    def list_for_student_year(self, *, student_id: int, class_id: int, year: int) -> Sequence[Payment]:
        raise NotImplementedError

    def list_for_class_month(self, *, class_id: int, year: int, month: int) -> Sequence[Payment]:
        """Newest first."""

        raise NotImplementedError

    def list_for_student(self, student_id: int) -> Sequence[Payment]:
        """Newest first."""

        raise NotImplementedError

    def search(self, criteria: PaymentFilter, *, offset: int, limit: int) -> tuple[list[Payment], int]:
        """Return one page (newest first) and the total number of matches."""

        raise NotImplementedError

    def update_receipt(
        self,
        *,
        payment_id: int,
        receipt_url: str,
        receipt_public_id: str,
        additional_note: Optional[str],
    ) -> bool:
        raise NotImplementedError

    def set_status(self, *, payment_id: int, status: PaymentStatus, action: AdminAction) -> bool:
        raise NotImplementedError

    def bulk_set_status(self, *, payment_ids: Sequence[int], status: PaymentStatus, action: AdminAction) -> int:
        """Apply one decision to many requests; returns the number of rows changed."""

        raise NotImplementedError

    def delete(self, payment_id: int) -> bool:
        raise NotImplementedError
