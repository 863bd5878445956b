import csv
import io
from datetime import date

import pytest

from atams.exceptions import BadRequestException, ForbiddenException
from app.services.report_service import CSV_COLUMNS, AttendanceReportService, export_filename
from tests.conftest import OTHER_STUDENT_ID, STUDENT_ID


@pytest.fixture
def reports():
    return AttendanceReportService()


@pytest.fixture
def two_classes(make_schedule, make_record):
    own_class = make_schedule()
    other_class = make_schedule(student_ids=(OTHER_STUDENT_ID,), cs_faculty_id=2002)
    make_record(ar_schedule_id=own_class.cs_id)
    make_record(ar_user_id=OTHER_STUDENT_ID, ar_schedule_id=other_class.cs_id)
    # proxy record without a class
    make_record(ar_user_id=OTHER_STUDENT_ID, ar_type="proxy", ar_face_confidence=None)
    return own_class, other_class


def test_faculty_see_their_classes_only(db, reports, two_classes, faculty):
    own_class, _ = two_classes

    records = reports.list_records(db, faculty)

    assert [r.ar_schedule_id for r in records] == [own_class.cs_id]
    assert reports.count_records(db, faculty) == 1


def test_faculty_without_classes_see_nothing(db, reports, two_classes, faculty):
    lecturer = faculty.model_copy(update={"user_id": 2999})

    assert reports.list_records(db, lecturer) == []
    assert reports.count_records(db, lecturer) == 0


def test_admins_see_everything(db, reports, two_classes, admin):
    assert reports.count_records(db, admin) == 3
    assert reports.count_records(db, admin, user_id=OTHER_STUDENT_ID) == 2
    assert reports.count_records(db, admin, date_from=date(2024, 1, 16)) == 0


def test_students_cannot_list(db, reports, student):
    with pytest.raises(ForbiddenException):
        reports.list_records(db, student)


def test_inverted_range(db, reports, admin):
    with pytest.raises(BadRequestException):
        reports.export_csv(db, admin, date_from=date(2024, 1, 16), date_to=date(2024, 1, 15))


def test_export_csv(db, reports, two_classes, admin):
    rows = list(csv.reader(io.StringIO(reports.export_csv(db, admin))))

    assert rows[0] == CSV_COLUMNS
    assert len(rows) == 4
    proxy_row = next(row for row in rows[1:] if row[4] == "proxy")
    assert proxy_row[3] == ""
    assert proxy_row[6] == "N/A"
    assert {row[2] for row in rows[1:]} == {str(STUDENT_ID), str(OTHER_STUDENT_ID)}


def test_export_filename():
    assert export_filename(None, None) == "attendance_all_to_all.csv"
    assert export_filename(date(2024, 1, 1), date(2024, 1, 31)) == "attendance_2024-01-01_to_2024-01-31.csv"
