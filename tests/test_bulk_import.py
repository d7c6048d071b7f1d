import io
from datetime import date, datetime

import pandas as pd
import pytest
from openpyxl import Workbook

from glz.models import Certificate
from glz.services import bulk_import
from glz.services.bulk_import import (
    ImportFileError,
    import_file,
    map_row,
    read_rows,
    run_import,
)
from glz.services.errors import GroupNotFound

from conftest import make_group, make_user

HEADERS = [
    "Nom complet",
    "Date de naissance",
    "Lieu de naissance",
    "Niveau de référence",
    "Date de début",
    "Date de fin",
    "Nombre de leçons",
    "Leçons suivies",
    "Évaluation",
    "Info cours",
]

LEARNERS = [
    ("Ama Mensah", "12.04.1998"),
    ("Paul Biya", "03.03.2001"),
    ("Chantal Ngo", "32.13.2000"),
    ("Eric Fotso", "21.09.1997"),
    ("Nadine Ekane", "30.01.1996"),
]


@pytest.fixture
def group(app):
    return make_group(level="B1", start=date(2024, 1, 8), time_slot="MO", name="Alpha")


def _csv_bytes(rows, delimiter=";"):
    lines = [delimiter.join(HEADERS)]
    for name, born in rows:
        lines.append(
            delimiter.join(
                [name, born, "Douala", "B1", "08.01.2024", "29.03.2024", "40", "", "très bien", "komplett"]
            )
        )
    return "\n".join(lines).encode("utf-8")


def test_map_row_accepts_french_and_english_labels():
    mapped = map_row(
        {
            "NOM COMPLET ": "Ama",
            "Date of birth": "1998-04-12",
            "Niveau de reference": "B1",
            "Unrelated": "x",
        }
    )
    assert mapped == {"fullName": "Ama", "dateOfBirth": "1998-04-12", "referenceLevel": "B1"}


def test_one_bad_row_does_not_stop_the_batch(group):
    admin = make_user()
    result = import_file(io.BytesIO(_csv_bytes(LEARNERS)), "learners.csv", group.group_code, admin)

    assert (result.total, result.succeeded, result.failed) == (5, 4, 1)
    failed = [o for o in result.results if not o.success]
    assert len(failed) == 1
    assert failed[0].row == 3
    assert failed[0].full_name == "Chantal Ngo"
    assert failed[0].kind == "InvalidDate"
    assert "dateOfBirth" in failed[0].message

    names = sorted(c.full_name for c in Certificate.query.all())
    assert names == ["Ama Mensah", "Eric Fotso", "Nadine Ekane", "Paul Biya"]
    stored = Certificate.query.filter_by(full_name="Ama Mensah").one()
    assert stored.lessons_attended == 40
    assert stored.evaluation == "Outstanding"
    assert stored.group_code == group.group_code


def test_result_payload_shape(group):
    admin = make_user()
    result = import_file(io.BytesIO(_csv_bytes(LEARNERS[:1], ",")), "one.csv", group.group_code, admin)
    payload = result.to_dict()
    assert payload["total"] == 1 and payload["success"] == 1 and payload["failed"] == 0
    assert payload["results"][0]["referenceNumber"].startswith("GLZ-")


def test_rows_see_earlier_rows_of_the_same_batch(group):
    admin = make_user()
    rows = [LEARNERS[0], LEARNERS[0]]
    result = import_file(io.BytesIO(_csv_bytes(rows)), "dupes.csv", group.group_code, admin)
    assert [o.success for o in result.results] == [True, False]
    assert result.results[1].kind == "DuplicateCertificate"


def test_xlsx_with_native_dates_and_serials(group):
    admin = make_user()
    wb = Workbook()
    ws = wb.active
    ws.append(["Full name", "Date of birth", "Place of birth", "Reference level",
               "Course start date", "Course end date", "Lesson units", "Lessons attended",
               "Evaluation", "Course info"])
    ws.append(["Ama Mensah", datetime(1998, 4, 12), "Douala", "B1",
               datetime(2024, 1, 8), datetime(2024, 3, 29), 40, 38, "Good", None])
    ws.append([None] * 10)
    ws.append(["Paul Biya", 36953, "Kribi", "b1",
               "2024-01-08", "29/03/2024", 40, 40, "mit Erfolg", "Teilweise"])
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)

    result = import_file(buf, "learners.xlsx", group.group_code, admin)
    assert result.total == 2
    assert result.succeeded == 2, [o.message for o in result.results]
    paul = Certificate.query.filter_by(full_name="Paul Biya").one()
    assert paul.date_of_birth == date(2001, 3, 3)
    assert paul.course_info == "Partially completed level"
    ama = Certificate.query.filter_by(full_name="Ama Mensah").one()
    assert ama.course_info == "Complete level"


def test_unknown_group_is_rejected_up_front(group):
    with pytest.raises(GroupNotFound):
        run_import([{"Full name": "Ama"}], "B1-01.01.2024-MO-Nope", None)


def test_empty_file_rejected(group):
    data = ";".join(HEADERS).encode("utf-8")
    with pytest.raises(ImportFileError):
        import_file(io.BytesIO(data), "empty.csv", group.group_code, None)


def test_unsupported_extension():
    with pytest.raises(ImportFileError):
        read_rows(io.BytesIO(b"whatever"), "learners.pdf")


def test_unreadable_workbook():
    with pytest.raises(ImportFileError):
        read_rows(io.BytesIO(b"not a zip"), "learners.xlsx")


def test_legacy_xls_goes_through_the_same_mapping(group, monkeypatch):
    admin = make_user()
    frame = pd.DataFrame(
        {
            "Nom complet": ["Ama Mensah", None, "Paul Biya"],
            "Date de naissance": [pd.Timestamp("1998-04-12"), pd.NaT, pd.Timestamp("2001-03-03")],
            "Lieu de naissance": ["Douala", None, "Kribi"],
            "Niveau de référence": ["B1", None, "B1"],
            "Date de début": [pd.Timestamp("2024-01-08"), pd.NaT, pd.Timestamp("2024-01-08")],
            "Date de fin": ["29.03.2024", None, "29.03.2024"],
            "Nombre de leçons": [40, None, 40],
            "Leçons suivies": [float("nan"), None, 36],
            "Évaluation": ["Good", None, "Participant"],
            "Info cours": [float("nan"), None, "Niveau incomplet"],
        }
    )
    seen = {}

    def fake_read_excel(buffer, **kwargs):
        seen.update(kwargs)
        return frame

    monkeypatch.setattr(bulk_import.pd, "read_excel", fake_read_excel)
    result = import_file(io.BytesIO(b"\xd0\xcf\x11\xe0"), "learners.XLS", group.group_code, admin)

    assert seen["engine"] == "xlrd"
    assert result.total == 2
    assert result.succeeded == 2, [o.message for o in result.results]
    ama = Certificate.query.filter_by(full_name="Ama Mensah").one()
    assert ama.date_of_birth == date(1998, 4, 12)
    assert ama.lessons_attended == 40
    assert ama.course_info == "Complete level"
    paul = Certificate.query.filter_by(full_name="Paul Biya").one()
    assert paul.lessons_attended == 36
    assert paul.course_info == "Partially completed level"


def test_corrupt_xls_rejected():
    with pytest.raises(ImportFileError):
        read_rows(io.BytesIO(b"definitely not a workbook"), "learners.xls")


def test_csv_date_serials_are_read_as_numbers():
    data = (
        "Full name;Date of birth;Course start date;Lesson units\n"
        "Ama Mensah;35897;45000;40\n"
    ).encode("utf-8")
    rows = read_rows(io.BytesIO(data), "serials.csv")
    assert rows[0]["Date of birth"] == 35897
    assert rows[0]["Course start date"] == 45000
    assert rows[0]["Lesson units"] == "40"


def test_csv_serial_dates_import(app):
    admin = make_user()
    group = make_group(level="B1", start=date(2023, 3, 15), time_slot="MO", name="Serial")
    data = (
        "Full name,Date of birth,Place of birth,Reference level,Course start date,"
        "Course end date,Lesson units,Evaluation\n"
        "Ama Mensah,12.04.1998,Douala,B1,45000,15.06.2023,40,Good\n"
    ).encode("utf-8")
    result = import_file(io.BytesIO(data), "serials.csv", group.group_code, admin)
    assert result.succeeded == 1, [o.message for o in result.results]
    cert = Certificate.query.one()
    assert cert.course_start_date == date(2023, 3, 15)
