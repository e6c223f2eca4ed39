"""Unit tests for the transactional record store."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from pipeline.errors import PersistenceError
from schemas.records import (
    AboutInquiryCreate,
    ContactMessageCreate,
    ContentCreate,
    ContentType,
    StudentCreate,
)
from storage.record_store import InMemoryRecordStore, PostgresTransaction


def _student(name="A", amount="500") -> StudentCreate:
    return StudentCreate(
        name=name,
        email=f"{name.lower()}@x.com",
        phone="1",
        course="C1",
        amount=Decimal(amount),
        payment_id="pay_1",
    )


class _Clock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def test_commit_publishes_staged_insert():
    store = InMemoryRecordStore()

    async def run():
        tx = await store.begin()
        student_id = await tx.insert_student(_student())
        staged = await tx.get_student(student_id)
        assert staged is not None
        assert await store.list_students() == []
        await tx.commit()
        return student_id

    student_id = asyncio.run(run())
    students = asyncio.run(store.list_students())
    assert [s.id for s in students] == [student_id]
    assert students[0].amount == Decimal("500")
    assert students[0].payment_status.value == "successful"
    assert store.open_transactions == 0


def test_rollback_discards_and_does_not_rewind_sequence():
    store = InMemoryRecordStore()

    async def run():
        tx = await store.begin()
        first = await tx.insert_student(_student("A"))
        await tx.rollback()
        tx = await store.begin()
        second = await tx.insert_student(_student("B"))
        await tx.commit()
        return first, second

    first, second = asyncio.run(run())
    assert (first, second) == (1, 2)
    assert [s.name for s in asyncio.run(store.list_students())] == ["B"]


def test_transaction_context_commits_and_rolls_back():
    store = InMemoryRecordStore()

    async def run():
        async with store.transaction() as tx:
            await tx.insert_about_inquiry(
                AboutInquiryCreate(name="A", email="a@x.com", subject="S", message="M")
            )
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await tx.insert_about_inquiry(
                    AboutInquiryCreate(name="B", email="b@x.com", subject="S", message="M")
                )
                raise RuntimeError("boom")
        return await store.list_about_inquiries()

    inquiries = asyncio.run(run())
    assert [i.name for i in inquiries] == ["A"]
    assert store.open_transactions == 0


def test_commit_and_rollback_are_idempotent():
    store = InMemoryRecordStore()

    async def run():
        tx = await store.begin()
        await tx.insert_student(_student())
        await tx.commit()
        await tx.rollback()
        await tx.commit()

    asyncio.run(run())
    assert len(asyncio.run(store.list_students())) == 1
    assert store.open_transactions == 0


def test_finished_transaction_rejects_new_work():
    store = InMemoryRecordStore()

    async def run():
        tx = await store.begin()
        await tx.rollback()
        await tx.insert_student(_student())

    with pytest.raises(PersistenceError):
        asyncio.run(run())


def test_contact_phone_stored_as_empty_string():
    store = InMemoryRecordStore()

    async def run():
        async with store.transaction() as tx:
            message_id = await tx.insert_contact_message(
                ContactMessageCreate(name="A", email="a@x.com", subject="S", message="M")
            )
            return await tx.get_contact_message(message_id)

    message = asyncio.run(run())
    assert message.phone == ""


def test_listings_are_newest_first_for_any_insertion_order():
    store = InMemoryRecordStore(clock=_Clock(datetime(2025, 1, 5, 9, 0, 0)))

    async def run():
        for name in ["first", "second", "third"]:
            async with store.transaction() as tx:
                await tx.insert_student(_student(name))
        return await store.list_students()

    students = asyncio.run(run())
    assert [s.name for s in students] == ["third", "second", "first"]
    dates = [s.registration_date for s in students]
    assert dates == sorted(dates, reverse=True)


def test_equal_timestamps_fall_back_to_id_order():
    fixed = datetime(2025, 1, 5, 9, 0, 0)
    store = InMemoryRecordStore(clock=lambda: fixed)

    async def run():
        async with store.transaction() as tx:
            await tx.insert_student(_student("A"))
            await tx.insert_student(_student("B"))
        return await store.list_students()

    assert [s.name for s in asyncio.run(run())] == ["B", "A"]


def test_seeded_users_are_listed():
    store = InMemoryRecordStore(
        users=[
            {"name": "Old", "email": "old@x.com", "created_at": datetime(2024, 1, 1)},
            {"name": "New", "email": "new@x.com", "role": "admin", "created_at": datetime(2025, 1, 1)},
        ]
    )
    users = asyncio.run(store.list_users())
    assert [u.email for u in users] == ["new@x.com", "old@x.com"]
    assert users[0].role == "admin"
    assert users[1].role == "student"


def test_content_create_get_delete():
    store = InMemoryRecordStore()
    content = ContentCreate(
        title="Phonics 101",
        content_type=ContentType.PDF,
        url="https://media.test/lms/1_phonics.pdf",
        storage_key="lms/1_phonics.pdf",
    )

    async def run():
        created = await store.create_content(content)
        fetched = await store.get_content(created.id)
        deleted = await store.delete_content(created.id)
        deleted_again = await store.delete_content(created.id)
        return created, fetched, deleted, deleted_again

    created, fetched, deleted, deleted_again = asyncio.run(run())
    assert fetched == created
    assert deleted is True
    assert deleted_again is False
    assert asyncio.run(store.get_content(created.id)) is None


# =============================================================================
# Postgres transaction lifecycle against fake connection objects
# =============================================================================

class _FakeTx:
    def __init__(self, fail_commit=False):
        self.fail_commit = fail_commit
        self.calls = []

    async def commit(self):
        self.calls.append("commit")
        if self.fail_commit:
            raise OSError("connection reset")

    async def rollback(self):
        self.calls.append("rollback")


class _FakeDb:
    def __init__(self):
        self.released = []

    async def release(self, conn):
        self.released.append(conn)


def test_postgres_commit_failure_releases_connection():
    db, conn, tx = _FakeDb(), object(), _FakeTx(fail_commit=True)
    transaction = PostgresTransaction(db, conn, tx)

    async def run():
        with pytest.raises(PersistenceError):
            await transaction.commit()
        await transaction.rollback()

    asyncio.run(run())
    assert tx.calls == ["commit"]
    assert db.released == [conn]


def test_postgres_rollback_releases_connection_once():
    db, conn, tx = _FakeDb(), object(), _FakeTx()
    transaction = PostgresTransaction(db, conn, tx)

    async def run():
        await transaction.rollback()
        await transaction.rollback()
        await transaction.commit()

    asyncio.run(run())
    assert tx.calls == ["rollback"]
    assert db.released == [conn]
