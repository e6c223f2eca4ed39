"""Tests for the spreadsheet export mirror (real xlsx files in tmp_path)."""

import asyncio
from datetime import datetime
from decimal import Decimal

import pandas as pd
import pytest

from pipeline.errors import MirrorWriteError
from schemas.records import (
    AboutInquiry,
    ContactMessage,
    EntityKind,
    PaymentStatus,
    StudentRegistration,
)
from storage.export_mirror import COLUMNS, ExportMirror, format_local_timestamp


def _student(student_id=1, name="A") -> StudentRegistration:
    return StudentRegistration(
        id=student_id,
        name=name,
        email="a@x.com",
        phone="1",
        course="C1",
        amount=Decimal("500.00"),
        payment_id="pay_1",
        payment_status=PaymentStatus.SUCCESSFUL,
        registration_date=datetime(2025, 1, 5, 15, 4, 9),
    )


def _contact(message_id=1, phone="") -> ContactMessage:
    return ContactMessage(
        id=message_id,
        name="B",
        email="b@x.com",
        phone=phone,
        subject="Hello",
        message="Question about fees",
        submission_date=datetime(2025, 2, 1, 0, 5, 0),
    )


@pytest.fixture
def mirror(tmp_path):
    return ExportMirror(tmp_path / "data")


@pytest.mark.parametrize(
    "value,expected",
    [
        (datetime(2025, 1, 5, 15, 4, 9), "1/5/2025, 3:04:09 PM"),
        (datetime(2025, 12, 31, 0, 5, 0), "12/31/2025, 12:05:00 AM"),
        (datetime(2025, 6, 1, 12, 0, 0), "6/1/2025, 12:00:00 PM"),
        (datetime(2025, 6, 1, 9, 30, 59), "6/1/2025, 9:30:59 AM"),
    ],
)
def test_format_local_timestamp(value, expected):
    assert format_local_timestamp(value) == expected


def test_append_creates_file_with_labeled_row(mirror):
    row = asyncio.run(mirror.append_row(EntityKind.STUDENTS, _student()))

    path = mirror.path_for(EntityKind.STUDENTS)
    assert path.name == "students.xlsx"
    frame = pd.read_excel(path, sheet_name="Students")
    assert list(frame.columns) == COLUMNS[EntityKind.STUDENTS]
    assert len(frame) == 1
    written = frame.iloc[0]
    assert written["ID"] == 1
    assert written["Name"] == "A"
    assert written["Amount"] == 500.0
    assert written["Payment ID"] == "pay_1"
    assert written["Payment Status"] == "successful"
    assert written["Registration Date"] == "1/5/2025, 3:04:09 PM"
    assert row["Registration Date"] == "1/5/2025, 3:04:09 PM"


def test_append_keeps_existing_rows(mirror):
    asyncio.run(mirror.append_row(EntityKind.STUDENTS, _student(1, "A")))
    asyncio.run(mirror.append_row(EntityKind.STUDENTS, _student(2, "B")))

    rows = mirror.read_rows(EntityKind.STUDENTS)
    assert [r["ID"] for r in rows] == [1, 2]
    assert [r["Name"] for r in rows] == ["A", "B"]


def test_contact_phone_defaults_to_na(mirror):
    asyncio.run(mirror.append_row(EntityKind.CONTACT_MESSAGES, _contact(1, phone="")))
    asyncio.run(mirror.append_row(EntityKind.CONTACT_MESSAGES, _contact(2, phone="9876543210")))

    rows = mirror.read_rows(EntityKind.CONTACT_MESSAGES)
    assert [r["Phone"] for r in rows] == ["N/A", "9876543210"]
    assert rows[0]["Submission Date"] == "2/1/2025, 12:05:00 AM"
    assert mirror.path_for(EntityKind.CONTACT_MESSAGES).name == "contact_messages.xlsx"


def test_about_sheet_layout(mirror):
    inquiry = AboutInquiry(
        id=7,
        name="C",
        email="c@x.com",
        subject="Batches",
        message="When does the next batch start?",
        submission_date=datetime(2025, 3, 3, 18, 0, 0),
    )
    asyncio.run(mirror.append_row(EntityKind.ABOUT_INQUIRIES, inquiry))

    frame = pd.read_excel(mirror.path_for(EntityKind.ABOUT_INQUIRIES), sheet_name="About Inquiries")
    assert list(frame.columns) == ["ID", "Name", "Email", "Subject", "Message", "Submission Date"]
    assert frame.iloc[0]["ID"] == 7


def test_other_sheets_are_preserved(mirror):
    path = mirror.path_for(EntityKind.STUDENTS)
    path.parent.mkdir(parents=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame([{"Note": "keep me"}]).to_excel(writer, sheet_name="Notes", index=False)

    asyncio.run(mirror.append_row(EntityKind.STUDENTS, _student()))

    sheets = pd.read_excel(path, sheet_name=None)
    assert set(sheets) == {"Notes", "Students"}
    assert sheets["Notes"].iloc[0]["Note"] == "keep me"
    assert len(sheets["Students"]) == 1


def test_corrupt_file_raises_mirror_write_error(mirror):
    path = mirror.path_for(EntityKind.STUDENTS)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"this is not a workbook")

    with pytest.raises(MirrorWriteError):
        asyncio.run(mirror.append_row(EntityKind.STUDENTS, _student()))

    assert path.read_bytes() == b"this is not a workbook"


def test_concurrent_appends_do_not_lose_rows(mirror):
    async def run():
        await asyncio.gather(
            *(mirror.append_row(EntityKind.STUDENTS, _student(i, f"S{i}")) for i in range(1, 11))
        )

    asyncio.run(run())
    rows = mirror.read_rows(EntityKind.STUDENTS)
    assert sorted(r["ID"] for r in rows) == list(range(1, 11))


def test_initialize_creates_empty_workbooks(mirror):
    asyncio.run(mirror.initialize())

    for kind in EntityKind:
        path = mirror.path_for(kind)
        assert path.is_file()
        assert mirror.read_rows(kind) == []
        frame = pd.read_excel(path)
        assert list(frame.columns) == COLUMNS[kind]


def test_initialize_leaves_existing_files(mirror):
    asyncio.run(mirror.append_row(EntityKind.STUDENTS, _student()))
    asyncio.run(mirror.initialize())
    assert len(mirror.read_rows(EntityKind.STUDENTS)) == 1


def test_resolve_download(mirror):
    assert mirror.resolve_download("students") is None
    asyncio.run(mirror.initialize())
    assert mirror.resolve_download("students") == mirror.path_for(EntityKind.STUDENTS)
    assert mirror.resolve_download("contact") == mirror.path_for(EntityKind.CONTACT_MESSAGES)
    assert mirror.resolve_download("about") == mirror.path_for(EntityKind.ABOUT_INQUIRIES)
    assert mirror.resolve_download("users") is None
    assert mirror.resolve_download("../students") is None
