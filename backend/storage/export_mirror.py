"""
Export Mirror - Spreadsheet Copies of Committed Records
=======================================================
Every student registration, contact message and about inquiry is also
appended to an .xlsx workbook in the data directory, one file per entity:

- students.xlsx          sheet "Students"
- contact_messages.xlsx  sheet "Contact Messages"
- about_inquiries.xlsx   sheet "About Inquiries"

Each append reads the whole workbook, adds one labeled row to the entity's
sheet and rewrites the file. Appends for the same entity are serialized with
an asyncio.Lock; the pandas/openpyxl work runs in a worker thread.

pip install pandas openpyxl
"""

import asyncio
import os
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import structlog

from config import settings
from pipeline.errors import MirrorWriteError
from schemas.records import EntityKind

logger = structlog.get_logger().bind(component="export_mirror")


SHEET_NAMES = {
    EntityKind.STUDENTS: "Students",
    EntityKind.CONTACT_MESSAGES: "Contact Messages",
    EntityKind.ABOUT_INQUIRIES: "About Inquiries",
}

FILE_NAMES = {
    EntityKind.STUDENTS: "students.xlsx",
    EntityKind.CONTACT_MESSAGES: "contact_messages.xlsx",
    EntityKind.ABOUT_INQUIRIES: "about_inquiries.xlsx",
}

COLUMNS = {
    EntityKind.STUDENTS: [
        "ID", "Name", "Email", "Phone", "Course", "Amount",
        "Payment ID", "Payment Status", "Registration Date",
    ],
    EntityKind.CONTACT_MESSAGES: [
        "ID", "Name", "Email", "Phone", "Subject", "Message", "Submission Date",
    ],
    EntityKind.ABOUT_INQUIRIES: [
        "ID", "Name", "Email", "Subject", "Message", "Submission Date",
    ],
}

# Public download names
DOWNLOADS = {
    "students": EntityKind.STUDENTS,
    "contact": EntityKind.CONTACT_MESSAGES,
    "about": EntityKind.ABOUT_INQUIRIES,
}


def format_local_timestamp(value: datetime) -> str:
    """Render like en-US toLocaleString(): 1/5/2025, 3:04:09 PM"""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return (
        f"{value.month}/{value.day}/{value.year}, "
        f"{hour}:{value.minute:02d}:{value.second:02d} {meridiem}"
    )


def build_row(kind: EntityKind, record) -> Dict[str, Any]:
    """Labeled spreadsheet row for a committed record."""
    if kind == EntityKind.STUDENTS:
        return {
            "ID": record.id,
            "Name": record.name,
            "Email": record.email,
            "Phone": record.phone,
            "Course": record.course,
            "Amount": float(record.amount),
            "Payment ID": record.payment_id,
            "Payment Status": record.payment_status.value,
            "Registration Date": format_local_timestamp(record.registration_date),
        }
    if kind == EntityKind.CONTACT_MESSAGES:
        return {
            "ID": record.id,
            "Name": record.name,
            "Email": record.email,
            "Phone": record.phone or "N/A",
            "Subject": record.subject,
            "Message": record.message,
            "Submission Date": format_local_timestamp(record.submission_date),
        }
    if kind == EntityKind.ABOUT_INQUIRIES:
        return {
            "ID": record.id,
            "Name": record.name,
            "Email": record.email,
            "Subject": record.subject,
            "Message": record.message,
            "Submission Date": format_local_timestamp(record.submission_date),
        }
    raise ValueError(f"Unknown entity kind: {kind}")


class ExportMirror:
    """Append-only spreadsheet mirror of committed records."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else settings.DATA_DIR
        self._locks: Dict[EntityKind, asyncio.Lock] = defaultdict(asyncio.Lock)

    def path_for(self, kind: EntityKind) -> Path:
        return self.data_dir / FILE_NAMES[kind]

    def resolve_download(self, name: str) -> Optional[Path]:
        kind = DOWNLOADS.get(name)
        if kind is None:
            return None
        path = self.path_for(kind)
        return path if path.is_file() else None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self):
        """Create the data directory and any missing workbook."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._initialize_sync)

    def _initialize_sync(self):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for kind in EntityKind:
            path = self.path_for(kind)
            if path.exists():
                continue
            empty = pd.DataFrame(columns=COLUMNS[kind])
            self._write_workbook(path, {SHEET_NAMES[kind]: empty})
            logger.info("mirror_file_created", path=str(path))

    # =========================================================================
    # APPEND
    # =========================================================================

    async def append_row(self, kind: EntityKind, record) -> Dict[str, Any]:
        row = build_row(kind, record)
        async with self._locks[kind]:
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, self._append_sync, kind, row)
            except MirrorWriteError:
                raise
            except Exception as e:
                logger.error("mirror_write_failed", entity=kind.value, id=row["ID"], error=str(e))
                raise MirrorWriteError(f"{FILE_NAMES[kind]}: {e}", cause=e) from e

        logger.info("mirror_row_appended", entity=kind.value, id=row["ID"])
        return row

    def _append_sync(self, kind: EntityKind, row: Dict[str, Any]):
        path = self.path_for(kind)
        sheet = SHEET_NAMES[kind]

        sheets = self._read_workbook(path) if path.exists() else {}
        existing = sheets.get(sheet)
        rows = existing.to_dict(orient="records") if existing is not None else []
        rows.append(row)

        columns = list(COLUMNS[kind])
        if existing is not None:
            columns += [c for c in existing.columns if c not in columns]
        sheets[sheet] = pd.DataFrame(rows, columns=columns)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._write_workbook(path, sheets)

    def read_rows(self, kind: EntityKind) -> List[Dict[str, Any]]:
        """Rows of the entity's sheet in file order; [] if the file is absent."""
        path = self.path_for(kind)
        if not path.exists():
            return []
        frame = self._read_workbook(path).get(SHEET_NAMES[kind])
        return frame.to_dict(orient="records") if frame is not None else []

    # =========================================================================
    # FILE I/O
    # =========================================================================

    @staticmethod
    def _read_workbook(path: Path) -> Dict[str, pd.DataFrame]:
        # keep_default_na=False keeps literal "N/A" and blank cells as text
        return pd.read_excel(
            path,
            sheet_name=None,
            engine="openpyxl",
            dtype=object,
            keep_default_na=False,
        )

    @staticmethod
    def _write_workbook(path: Path, sheets: Dict[str, pd.DataFrame]):
        tmp_path = path.with_name(f".{path.stem}.tmp{path.suffix}")
        with pd.ExcelWriter(tmp_path, engine="openpyxl") as writer:
            for name, frame in sheets.items():
                frame.to_excel(writer, sheet_name=name, index=False)
        os.replace(tmp_path, path)
