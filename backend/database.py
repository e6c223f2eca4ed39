"""
Database Module
===============
AsyncPG connection pool for PostgreSQL plus the schema migrations for the
five tables the backend owns:

- students          (payment-confirmed course registrations)
- contact_messages  (contact form submissions)
- about_inquiries   (about page inquiries)
- users             (read-only here; populated by the auth integration)
- lms_content       (learning-content metadata; bytes live on the media host)

The pool is an explicitly constructed handle. Nothing in this module is a
process global, so tests and alternative stores can run side by side.

pip install asyncpg
"""

import ssl
from contextlib import asynccontextmanager
from typing import List, Optional

import asyncpg
import structlog

from config import settings

logger = structlog.get_logger().bind(component="database")


MIGRATIONS = [
    """
    CREATE TABLE IF NOT EXISTS students (
        id SERIAL PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        email VARCHAR(100) NOT NULL,
        phone VARCHAR(20) NOT NULL,
        course VARCHAR(100) NOT NULL,
        payment_id VARCHAR(100),
        payment_status VARCHAR(20) DEFAULT 'successful',
        amount DECIMAL(10,2) NOT NULL,
        registration_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contact_messages (
        id SERIAL PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        email VARCHAR(100) NOT NULL,
        phone VARCHAR(20),
        subject VARCHAR(200) NOT NULL,
        message TEXT NOT NULL,
        submission_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS about_inquiries (
        id SERIAL PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        email VARCHAR(100) NOT NULL,
        subject VARCHAR(200) NOT NULL,
        message TEXT NOT NULL,
        submission_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        name VARCHAR(100),
        email VARCHAR(100) NOT NULL UNIQUE,
        external_auth_id VARCHAR(255) UNIQUE,
        role VARCHAR(20) DEFAULT 'student',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS lms_content (
        id SERIAL PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        description TEXT,
        content_type VARCHAR(20) NOT NULL DEFAULT 'other',
        url TEXT NOT NULL,
        storage_key VARCHAR(512),
        file_size BIGINT,
        file_name VARCHAR(255),
        created_by VARCHAR(100),
        creator_email VARCHAR(100),
        external_auth_id VARCHAR(255),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_students_registration_date ON students(registration_date DESC)",
    "CREATE INDEX IF NOT EXISTS idx_contact_submission_date ON contact_messages(submission_date DESC)",
    "CREATE INDEX IF NOT EXISTS idx_about_submission_date ON about_inquiries(submission_date DESC)",
    "CREATE INDEX IF NOT EXISTS idx_lms_content_created_at ON lms_content(created_at DESC)",
]


class Database:
    """Async database connection pool manager"""

    def __init__(
        self,
        dsn: str = settings.DATABASE_URL,
        min_size: int = settings.MIN_POOL_SIZE,
        max_size: int = settings.MAX_POOL_SIZE,
        use_ssl: bool = settings.DB_SSL,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.use_ssl = use_ssl
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    async def initialize(self):
        """Create the pool and run migrations."""
        if self._pool is not None:
            return

        ssl_context = None
        if self.use_ssl:
            # Managed Postgres hosts present certificates we do not pin
            ssl_context = ssl.create_default_context()
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        try:
            self._pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                ssl=ssl_context,
            )
        except Exception as e:
            logger.error("pool_init_failed", error=str(e))
            raise

        logger.info("pool_initialized", min_size=self.min_size, max_size=self.max_size)
        await self._run_migrations()

    async def close(self):
        """Close the connection pool"""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("pool_closed")

    async def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            await self.initialize()
        return self._pool

    async def checkout(self) -> asyncpg.Connection:
        """Take a connection out of the pool; the caller must release() it."""
        pool = await self._require_pool()
        return await pool.acquire()

    async def release(self, conn: asyncpg.Connection):
        if self._pool is not None:
            await self._pool.release(conn)

    @asynccontextmanager
    async def acquire(self):
        """Acquire a connection from the pool"""
        pool = await self._require_pool()
        async with pool.acquire() as conn:
            yield conn

    async def execute(self, query: str, *args) -> str:
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch_one(self, query: str, *args) -> Optional[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetch_all(self, query: str, *args) -> List[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def _run_migrations(self):
        async with self.acquire() as conn:
            for migration in MIGRATIONS:
                try:
                    await conn.execute(migration)
                except asyncpg.PostgresError as e:
                    if "already exists" not in str(e):
                        logger.warning("migration_warning", error=str(e))

        logger.info("migrations_complete", tables=5)
