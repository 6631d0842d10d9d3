from __future__ import annotations

import pytest

from vantrack.credentials import CredentialStore, generate_guardian_code
from vantrack.exceptions import StudentNotFoundError
from vantrack.models import Student
from vantrack.state.store import TransitStore


def _store() -> TransitStore:
    store = TransitStore()
    store.add_student(Student(id="stu-1", guardian_code="482913", handover_token="tok-7f3a"))
    return store


def test_generated_codes_are_six_digits_without_leading_zero() -> None:
    for _ in range(200):
        code = generate_guardian_code()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_generated_code_never_repeats_previous(monkeypatch: pytest.MonkeyPatch) -> None:
    draws = iter([382913, 382913, 0])
    monkeypatch.setattr("vantrack.credentials.secrets.randbelow", lambda _n: next(draws))

    assert generate_guardian_code("482913") == "100000"


def test_rotate_persists_new_code() -> None:
    store = _store()
    credentials = CredentialStore(store)

    code = credentials.rotate_guardian_code("stu-1")

    assert code != "482913"
    assert credentials.get_guardian_code("stu-1") == code
    assert credentials.get_handover_token("stu-1") == "tok-7f3a"


def test_set_guardian_code_requires_six_digits() -> None:
    store = _store()
    credentials = CredentialStore(store)

    for bad in ("12345", "1234567", "abcdef", ""):
        with pytest.raises(ValueError):
            credentials.set_guardian_code("stu-1", bad)

    assert credentials.set_guardian_code("stu-1", " 654321 ") == "654321"
    assert store.get_student("stu-1").guardian_code == "654321"


def test_unknown_student_raises() -> None:
    with pytest.raises(StudentNotFoundError):
        CredentialStore(_store()).rotate_guardian_code("ghost")
