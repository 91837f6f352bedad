import pytest

from questionnaire_api.core.errors import ValidationFailed
from questionnaire_api.models.enums import ImportMode, Role
from questionnaire_api.models.import_history import ImportHistory
from questionnaire_api.models.profile import Profile
from questionnaire_api.models.school import Student, StudentTeacherSubject, Subject, Teacher
from questionnaire_api.services.imports import EXPORT_HEADER, ImportService, parse_import_data

DATA = """ZAK;EMAIL;HESLO;UCITEL;PREDMET
Jana Nováková;jana@school.cz;pw1;Ms. Lee;Math

Jana Nováková;jana@school.cz;pw1;Mr. Kim;Art
Petr Svoboda;petr@school.cz;pw2;Ms. Lee;Math
"""


def test_parse_skips_header_and_blank_lines():
    records = parse_import_data(DATA)
    assert len(records) == 3
    assert records[0].student == "Jana Nováková"
    assert records[2].subject == "Math"


def test_parse_without_header():
    records = parse_import_data("  A ; a@x.cz ; p ; T ; S  ")
    assert [(r.student, r.email, r.teacher, r.subject) for r in records] == [("A", "a@x.cz", "T", "S")]


def test_parse_rejects_wrong_field_count():
    with pytest.raises(ValidationFailed) as exc:
        parse_import_data("ZAK;EMAIL;HESLO;UCITEL;PREDMET\nA;a@x.cz;p;T")
    assert exc.value.message.startswith('Invalid line format at line 2: "A;a@x.cz;p;T"')
    assert exc.value.message.endswith("got 4")


def test_add_creates_rows_and_accounts(db, identity):
    out = ImportService(db, identity).import_data(DATA, ImportMode.ADD)

    assert out.success is True
    assert out.message == "Data byla úspěšně přidána"
    assert (out.total_records, out.new_students, out.new_teachers, out.new_subjects) == (3, 2, 2, 2)
    assert out.updated_records == 3
    assert out.duplicates_skipped == 0
    assert out.errors == []

    assert set(identity.users) == {"jana@school.cz", "petr@school.cz"}
    assert identity.users["jana@school.cz"]["password"] == "pw1"
    profile = db.query(Profile).filter(Profile.email == "jana@school.cz").one()
    assert (profile.role, profile.first_name, profile.last_name) == (Role.STUDENT.value, "Jana", "Nováková")

    history = db.query(ImportHistory).one()
    assert history.status == "completed"
    assert history.updated_records == 3


def test_add_twice_skips_duplicates(db, identity):
    svc = ImportService(db, identity)
    svc.import_data(DATA, ImportMode.ADD)
    again = svc.import_data(DATA + "Eva;eva@school.cz;pw3;Ms. Lee;Math\n", ImportMode.ADD)

    assert again.duplicates_skipped == 3
    assert again.updated_records == 1
    assert (again.new_students, again.new_teachers, again.new_subjects) == (1, 0, 0)
    assert db.query(StudentTeacherSubject).count() == 4


def test_replace_clears_existing_data(db, make, identity):
    old = make.student("Old", "old@school.cz")
    make.triple(old, make.teacher("Old teacher"), make.subject("History"))
    identity.add_user("old@school.cz", "pw")

    out = ImportService(db, identity).import_data(DATA, ImportMode.REPLACE)
    assert out.message == "Data byla úspěšně nahrazena"
    assert {s.email for s in db.query(Student).all()} == {"jana@school.cz", "petr@school.cz"}
    assert {s.name for s in db.query(Subject).all()} == {"Math", "Art"}
    assert "old@school.cz" not in identity.users


def test_import_without_admin_access_records_error(db, identity):
    identity.has_admin = False
    out = ImportService(db, identity).import_data(DATA, ImportMode.ADD)
    assert out.success is True
    assert out.errors == ["Identity provider admin access not configured; no login accounts created"]
    assert db.query(ImportHistory).one().status == "completed_with_errors"


def test_import_with_bad_line_fails_without_writing(db, identity):
    out = ImportService(db, identity).import_data("A;a@x.cz;p;T;S\nbroken", ImportMode.ADD)
    assert out.success is False
    assert out.message.startswith("Import failed: Invalid line format at line 2")
    assert db.query(Student).count() == 0


def test_export_lists_active_triples_with_students(db, make):
    math = make.subject("Math")
    lee = make.teacher("Ms. Lee")
    alice = make.student("Alice", "alice@school.cz")
    bob = make.student("Bob", None)
    make.triple(alice, lee, math)
    make.triple(bob, None, math)
    make.triple(alice, None, math, is_active=False)
    make.triple(None, lee, math)

    lines = ImportService(db).export().split("\n")
    assert lines[0] == EXPORT_HEADER
    assert sorted(lines[1:]) == ["Alice;alice@school.cz;Ms. Lee;Math", "Bob;;;Math"]


def test_export_without_data(db):
    assert ImportService(db).export() == "ZAK;EMAIL;UCITEL;PREDMET\n# No data to export"


def test_delete_all_data_reports_counts(db, make, identity):
    math = make.subject("Math")
    make.subject("Art")
    lee = make.teacher()
    make.triple(make.student(), lee, math)

    out = ImportService(db, identity).delete_all_data()
    assert out.success is True
    assert out.message == "Smazáno: 1 vztahů, 1 studentů, 1 učitelů, 2 předmětů"
    assert db.query(Teacher).count() == 0
    history = db.query(ImportHistory).one()
    assert history.status == "data_cleared"
    assert history.error_details == {"deleted": {"relationships": 1, "students": 1, "teachers": 1, "subjects": 2}}
