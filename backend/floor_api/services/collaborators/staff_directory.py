"""
Staff Directory: resolves the staff codes floor terminals send.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from floor_api.models import Staff
from shared.config.logging import get_logger
from shared.utils.exceptions import UnauthorizedError

logger = get_logger(__name__)


class StaffDirectory:
    """DB-backed lookup of active staff by code."""

    def __init__(self, db: Session):
        self._db = db

    def find(self, code: str | int | None) -> Staff | None:
        if code is None:
            return None
        normalized = str(code).strip()
        if not normalized:
            return None
        return self._db.scalar(
            select(Staff).where(
                Staff.code == normalized,
                Staff.is_active.is_(True),
            )
        )

    def resolve(self, code: str | int | None) -> Staff:
        """
        Return the active staff member for a code.

        Raises:
            UnauthorizedError: unknown, blank or inactive code.
        """
        staff = self.find(code)
        if staff is None:
            raise UnauthorizedError(
                f"Personal con código '{code}' no encontrado o inactivo",
                staff_code=code,
            )
        return staff

    def resolve_optional(self, code: str | int | None) -> Staff | None:
        """Like resolve(), but an absent code resolves to None."""
        if code is None or str(code).strip() == "":
            return None
        return self.resolve(code)
