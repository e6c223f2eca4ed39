# storage/record_store.py
# ============================================================================
# ASTA EDUCATION BACKEND - TRANSACTIONAL RECORD STORE
# ============================================================================
# Persistence interface for every table, with a Postgres implementation over
# the asyncpg pool and an in-memory implementation with the same semantics.
# ============================================================================

from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from functools import wraps
from typing import Callable, Dict, Iterable, List, Optional, Type

import structlog

from database import Database
from pipeline.errors import PersistenceError, PipelineError
from schemas.records import (
    AboutInquiry,
    AboutInquiryCreate,
    ContactMessage,
    ContactMessageCreate,
    ContentCreate,
    ContentMetadata,
    StudentCreate,
    StudentRegistration,
    User,
)

logger = structlog.get_logger().bind(component="record_store")


def _persistence_errors(func):
    """Re-raise driver/IO failures as PersistenceError."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PipelineError:
            raise
        except Exception as e:
            raise PersistenceError(f"{func.__name__} failed: {e}", cause=e) from e

    return wrapper


# =============================================================================
# INTERFACES
# =============================================================================

class IRecordTransaction(ABC):
    """One open transaction on one connection.

    commit() and rollback() both end the transaction and release the
    connection; calling either after the transaction has ended is a no-op.
    """

    @abstractmethod
    async def insert_student(self, student: StudentCreate) -> int:
        pass

    @abstractmethod
    async def get_student(self, student_id: int) -> Optional[StudentRegistration]:
        pass

    @abstractmethod
    async def insert_contact_message(self, message: ContactMessageCreate) -> int:
        pass

    @abstractmethod
    async def get_contact_message(self, message_id: int) -> Optional[ContactMessage]:
        pass

    @abstractmethod
    async def insert_about_inquiry(self, inquiry: AboutInquiryCreate) -> int:
        pass

    @abstractmethod
    async def get_about_inquiry(self, inquiry_id: int) -> Optional[AboutInquiry]:
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass


class IRecordStore(ABC):
    """Record store: transactional writes plus newest-first listings."""

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def begin(self) -> IRecordTransaction:
        """Check out a connection and start a transaction on it."""

    @asynccontextmanager
    async def transaction(self):
        """Commit on normal exit, roll back on any exception."""
        tx = await self.begin()
        try:
            yield tx
        except BaseException:
            await tx.rollback()
            raise
        else:
            await tx.commit()

    @abstractmethod
    async def ping(self) -> bool:
        pass

    @abstractmethod
    async def list_students(self) -> List[StudentRegistration]:
        pass

    @abstractmethod
    async def list_contact_messages(self) -> List[ContactMessage]:
        pass

    @abstractmethod
    async def list_about_inquiries(self) -> List[AboutInquiry]:
        pass

    @abstractmethod
    async def list_users(self) -> List[User]:
        pass

    @abstractmethod
    async def list_content(self) -> List[ContentMetadata]:
        pass

    @abstractmethod
    async def create_content(self, content: ContentCreate) -> ContentMetadata:
        pass

    @abstractmethod
    async def get_content(self, content_id: int) -> Optional[ContentMetadata]:
        pass

    @abstractmethod
    async def delete_content(self, content_id: int) -> bool:
        pass


# =============================================================================
# POSTGRES IMPLEMENTATION
# =============================================================================

class PostgresTransaction(IRecordTransaction):

    def __init__(self, db: Database, conn, tx):
        self._db = db
        self._conn = conn
        self._tx = tx
        self._done = False

    async def _finish(self):
        self._done = True
        await self._db.release(self._conn)

    @_persistence_errors
    async def insert_student(self, student: StudentCreate) -> int:
        row = await self._conn.fetchrow(
            """
            INSERT INTO students
            (name, email, phone, course, amount, payment_id, payment_status)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING id
            """,
            student.name,
            student.email,
            student.phone,
            student.course,
            student.amount,
            student.payment_id,
            student.payment_status.value,
        )
        return row["id"]

    @_persistence_errors
    async def get_student(self, student_id: int) -> Optional[StudentRegistration]:
        row = await self._conn.fetchrow("SELECT * FROM students WHERE id = $1", student_id)
        return StudentRegistration.model_validate(dict(row)) if row else None

    @_persistence_errors
    async def insert_contact_message(self, message: ContactMessageCreate) -> int:
        row = await self._conn.fetchrow(
            """
            INSERT INTO contact_messages (name, email, phone, subject, message)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            message.name,
            message.email,
            message.phone or "",
            message.subject,
            message.message,
        )
        return row["id"]

    @_persistence_errors
    async def get_contact_message(self, message_id: int) -> Optional[ContactMessage]:
        row = await self._conn.fetchrow("SELECT * FROM contact_messages WHERE id = $1", message_id)
        return ContactMessage.model_validate(dict(row)) if row else None

    @_persistence_errors
    async def insert_about_inquiry(self, inquiry: AboutInquiryCreate) -> int:
        row = await self._conn.fetchrow(
            """
            INSERT INTO about_inquiries (name, email, subject, message)
            VALUES ($1, $2, $3, $4)
            RETURNING id
            """,
            inquiry.name,
            inquiry.email,
            inquiry.subject,
            inquiry.message,
        )
        return row["id"]

    @_persistence_errors
    async def get_about_inquiry(self, inquiry_id: int) -> Optional[AboutInquiry]:
        row = await self._conn.fetchrow("SELECT * FROM about_inquiries WHERE id = $1", inquiry_id)
        return AboutInquiry.model_validate(dict(row)) if row else None

    async def commit(self) -> None:
        if self._done:
            return
        try:
            await self._tx.commit()
        except Exception as e:
            raise PersistenceError(f"commit failed: {e}", cause=e) from e
        finally:
            await self._finish()

    async def rollback(self) -> None:
        if self._done:
            return
        try:
            await self._tx.rollback()
        finally:
            await self._finish()


class PostgresRecordStore(IRecordStore):
    """Record store backed by the asyncpg pool."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or Database()

    async def initialize(self) -> None:
        await self.db.initialize()

    async def close(self) -> None:
        await self.db.close()

    @_persistence_errors
    async def begin(self) -> IRecordTransaction:
        conn = await self.db.checkout()
        tx = conn.transaction()
        try:
            await tx.start()
        except BaseException:
            await self.db.release(conn)
            raise
        return PostgresTransaction(self.db, conn, tx)

    async def ping(self) -> bool:
        try:
            await self.db.fetch_one("SELECT 1")
            return True
        except Exception as e:
            logger.warning("ping_failed", error=str(e))
            return False

    @_persistence_errors
    async def list_students(self) -> List[StudentRegistration]:
        rows = await self.db.fetch_all(
            "SELECT * FROM students ORDER BY registration_date DESC, id DESC"
        )
        return [StudentRegistration.model_validate(dict(row)) for row in rows]

    @_persistence_errors
    async def list_contact_messages(self) -> List[ContactMessage]:
        rows = await self.db.fetch_all(
            "SELECT * FROM contact_messages ORDER BY submission_date DESC, id DESC"
        )
        return [ContactMessage.model_validate(dict(row)) for row in rows]

    @_persistence_errors
    async def list_about_inquiries(self) -> List[AboutInquiry]:
        rows = await self.db.fetch_all(
            "SELECT * FROM about_inquiries ORDER BY submission_date DESC, id DESC"
        )
        return [AboutInquiry.model_validate(dict(row)) for row in rows]

    @_persistence_errors
    async def list_users(self) -> List[User]:
        rows = await self.db.fetch_all("SELECT * FROM users ORDER BY created_at DESC, id DESC")
        return [User.model_validate(dict(row)) for row in rows]

    @_persistence_errors
    async def list_content(self) -> List[ContentMetadata]:
        rows = await self.db.fetch_all("SELECT * FROM lms_content ORDER BY created_at DESC, id DESC")
        return [ContentMetadata.model_validate(dict(row)) for row in rows]

    @_persistence_errors
    async def create_content(self, content: ContentCreate) -> ContentMetadata:
        row = await self.db.fetch_one(
            """
            INSERT INTO lms_content
            (title, description, content_type, url, storage_key, file_size,
             file_name, created_by, creator_email, external_auth_id)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *
            """,
            content.title,
            content.description,
            content.content_type.value,
            content.url,
            content.storage_key,
            content.file_size,
            content.file_name,
            content.created_by,
            content.creator_email,
            content.external_auth_id,
        )
        return ContentMetadata.model_validate(dict(row))

    @_persistence_errors
    async def get_content(self, content_id: int) -> Optional[ContentMetadata]:
        row = await self.db.fetch_one("SELECT * FROM lms_content WHERE id = $1", content_id)
        return ContentMetadata.model_validate(dict(row)) if row else None

    @_persistence_errors
    async def delete_content(self, content_id: int) -> bool:
        result = await self.db.execute("DELETE FROM lms_content WHERE id = $1", content_id)
        return result == "DELETE 1"


# =============================================================================
# IN-MEMORY IMPLEMENTATION (tests and database-less local runs)
# =============================================================================

_TIMESTAMP_COLUMNS = {
    "students": "registration_date",
    "contact_messages": "submission_date",
    "about_inquiries": "submission_date",
    "users": "created_at",
    "lms_content": "created_at",
}


class InMemoryTransaction(IRecordTransaction):
    """Staged writes are visible only to this transaction until commit."""

    def __init__(self, store: "InMemoryRecordStore"):
        self._store = store
        self._staged: Dict[str, List[dict]] = defaultdict(list)
        self._done = False

    def _ensure_open(self):
        if self._done:
            raise PersistenceError("transaction already finished")

    def _insert(self, table: str, values: dict) -> int:
        self._ensure_open()
        row = dict(values)
        row["id"] = self._store._next_id(table)
        row[_TIMESTAMP_COLUMNS[table]] = self._store._clock()
        self._staged[table].append(row)
        return row["id"]

    def _get(self, table: str, row_id: int) -> Optional[dict]:
        self._ensure_open()
        for row in self._staged[table]:
            if row["id"] == row_id:
                return row
        return self._store._find(table, row_id)

    async def insert_student(self, student: StudentCreate) -> int:
        return self._insert("students", student.model_dump())

    async def get_student(self, student_id: int) -> Optional[StudentRegistration]:
        row = self._get("students", student_id)
        return StudentRegistration.model_validate(row) if row else None

    async def insert_contact_message(self, message: ContactMessageCreate) -> int:
        values = message.model_dump()
        values["phone"] = values.get("phone") or ""
        return self._insert("contact_messages", values)

    async def get_contact_message(self, message_id: int) -> Optional[ContactMessage]:
        row = self._get("contact_messages", message_id)
        return ContactMessage.model_validate(row) if row else None

    async def insert_about_inquiry(self, inquiry: AboutInquiryCreate) -> int:
        return self._insert("about_inquiries", inquiry.model_dump())

    async def get_about_inquiry(self, inquiry_id: int) -> Optional[AboutInquiry]:
        row = self._get("about_inquiries", inquiry_id)
        return AboutInquiry.model_validate(row) if row else None

    async def commit(self) -> None:
        if self._done:
            return
        self._done = True
        for table, rows in self._staged.items():
            self._store._tables[table].extend(rows)
        self._store.open_transactions -= 1

    async def rollback(self) -> None:
        if self._done:
            return
        self._done = True
        self._staged.clear()
        self._store.open_transactions -= 1


class InMemoryRecordStore(IRecordStore):
    """Dict-backed store. Ids come from per-table sequences that, like a
    SERIAL column, are not rewound by rollback."""

    transaction_class: Type[InMemoryTransaction] = InMemoryTransaction

    def __init__(
        self,
        users: Optional[Iterable[dict]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._tables: Dict[str, List[dict]] = defaultdict(list)
        self._sequences: Dict[str, int] = defaultdict(int)
        self._clock = clock or datetime.now
        self.open_transactions = 0
        for user in users or []:
            row = dict(user)
            row.setdefault("id", self._next_id("users"))
            row.setdefault("created_at", self._clock())
            self._tables["users"].append(row)

    def _next_id(self, table: str) -> int:
        self._sequences[table] += 1
        return self._sequences[table]

    def _find(self, table: str, row_id: int) -> Optional[dict]:
        for row in self._tables[table]:
            if row["id"] == row_id:
                return row
        return None

    def _newest_first(self, table: str) -> List[dict]:
        column = _TIMESTAMP_COLUMNS[table]
        return sorted(self._tables[table], key=lambda r: (r[column], r["id"]), reverse=True)

    def rows(self, table: str) -> List[dict]:
        """Committed rows in insertion order."""
        return list(self._tables[table])

    async def begin(self) -> IRecordTransaction:
        self.open_transactions += 1
        return self.transaction_class(self)

    async def ping(self) -> bool:
        return True

    async def list_students(self) -> List[StudentRegistration]:
        return [StudentRegistration.model_validate(r) for r in self._newest_first("students")]

    async def list_contact_messages(self) -> List[ContactMessage]:
        return [ContactMessage.model_validate(r) for r in self._newest_first("contact_messages")]

    async def list_about_inquiries(self) -> List[AboutInquiry]:
        return [AboutInquiry.model_validate(r) for r in self._newest_first("about_inquiries")]

    async def list_users(self) -> List[User]:
        return [User.model_validate(r) for r in self._newest_first("users")]

    async def list_content(self) -> List[ContentMetadata]:
        return [ContentMetadata.model_validate(r) for r in self._newest_first("lms_content")]

    async def create_content(self, content: ContentCreate) -> ContentMetadata:
        row = content.model_dump()
        row["id"] = self._next_id("lms_content")
        row["created_at"] = self._clock()
        self._tables["lms_content"].append(row)
        return ContentMetadata.model_validate(row)

    async def get_content(self, content_id: int) -> Optional[ContentMetadata]:
        row = self._find("lms_content", content_id)
        return ContentMetadata.model_validate(row) if row else None

    async def delete_content(self, content_id: int) -> bool:
        row = self._find("lms_content", content_id)
        if row is None:
            return False
        self._tables["lms_content"].remove(row)
        return True
