"""Guardian codes and handover tokens."""

from __future__ import annotations

import logging
import secrets

from vantrack._constants import GUARDIAN_CODE_MAX, GUARDIAN_CODE_MIN
from vantrack.models.student import GUARDIAN_CODE_PATTERN
from vantrack.state.store import TransitStore

_logger = logging.getLogger(__name__)


def generate_guardian_code(previous: str | None = None) -> str:
    """Uniform random code in ``"100000"``..``"999999"``, never equal to *previous*."""
    span = GUARDIAN_CODE_MAX - GUARDIAN_CODE_MIN + 1
    while True:
        code = str(GUARDIAN_CODE_MIN + secrets.randbelow(span))
        if code != previous:
            return code


class CredentialStore:
    """Owns the two secrets that authorize a custody transfer."""

    def __init__(self, store: TransitStore) -> None:
        self._store = store

    def rotate_guardian_code(self, student_id: str) -> str:
        """Issue, persist and return a fresh guardian code."""
        current = self._store.get_student(student_id)
        code = generate_guardian_code(current.guardian_code)
        self._store.update_student(student_id, guardian_code=code)
        _logger.debug("Rotated guardian code student=%s", student_id)
        return code

    def get_handover_token(self, student_id: str) -> str:
        """Return the provisioned handover token (this core never rotates it)."""
        return self._store.get_student(student_id).handover_token

    def get_guardian_code(self, student_id: str) -> str:
        return self._store.get_student(student_id).guardian_code

    def set_guardian_code(self, student_id: str, code: str) -> str:
        """Store a guardian-chosen code; it must be exactly 6 digits."""
        value = str(code).strip()
        if not GUARDIAN_CODE_PATTERN.match(value):
            raise ValueError("guardian code must be exactly 6 digits")
        self._store.update_student(student_id, guardian_code=value)
        _logger.info("Guardian code set by guardian student=%s", student_id)
        return value
