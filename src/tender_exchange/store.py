"""
SQLite Store - the persistence collaborator

Transactional CRUD for companies, users, goods/services, tenders and
applications. The store is where the authoritative guards live:

- UNIQUE(tender_id, company_id) on applications (one bid per company per tender)
- UNIQUE company name, user email and goods/service name
- Conditional status updates (compare-and-swap) so that two racing
  transitions cannot both succeed

The store knows nothing about roles or transition tables; the core checks
those before it calls in.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator, Protocol

from tender_exchange.application.models import Application, ApplicationStatus
from tender_exchange.directory.models import Company, GoodsService, User
from tender_exchange.kernel.errors import (
    DuplicateApplicationError,
    DuplicateCompanyError,
    StoreUnavailableError,
    ValidationError,
)
from tender_exchange.kernel.logging import get_logger
from tender_exchange.tender.models import Tender, TenderStatus

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS companies (
    company_id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    industry TEXT,
    description TEXT,
    logo_url TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    credential_hash TEXT NOT NULL,
    full_name TEXT,
    role TEXT NOT NULL,
    company_id TEXT REFERENCES companies(company_id),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS goods_services (
    goods_service_id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    category TEXT,
    description TEXT
);

CREATE TABLE IF NOT EXISTS company_goods_services (
    company_id TEXT NOT NULL REFERENCES companies(company_id),
    goods_service_id TEXT NOT NULL REFERENCES goods_services(goods_service_id),
    PRIMARY KEY (company_id, goods_service_id)
);

CREATE TABLE IF NOT EXISTS tenders (
    tender_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    category TEXT,
    deadline TEXT NOT NULL,
    budget TEXT NOT NULL,
    company_id TEXT NOT NULL REFERENCES companies(company_id),
    created_by TEXT NOT NULL REFERENCES users(user_id),
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS applications (
    application_id TEXT PRIMARY KEY,
    tender_id TEXT NOT NULL REFERENCES tenders(tender_id),
    company_id TEXT NOT NULL REFERENCES companies(company_id),
    status TEXT NOT NULL,
    quotation_amount TEXT NOT NULL,
    proposal_text TEXT NOT NULL,
    created_at TEXT NOT NULL,
    decided_at TEXT,
    decided_by TEXT,

    UNIQUE(tender_id, company_id)
);

CREATE INDEX IF NOT EXISTS idx_tenders_company ON tenders(company_id);
CREATE INDEX IF NOT EXISTS idx_tenders_status ON tenders(status, deadline);
CREATE INDEX IF NOT EXISTS idx_applications_company ON applications(company_id);
"""

TABLES = (
    "companies",
    "users",
    "goods_services",
    "company_goods_services",
    "tenders",
    "applications",
)


class PersistenceStore(Protocol):
    """What the core needs from persistence"""

    def insert_tender(self, tender: Tender) -> Tender: ...

    def get_tender(self, tender_id: str) -> Tender | None: ...

    def list_tenders(
        self, company_id: str | None = None, stored_status: TenderStatus | None = None
    ) -> list[Tender]: ...

    def list_overdue_active_tenders(self, now: datetime) -> list[Tender]: ...

    def update_tender_status_if(
        self,
        tender_id: str,
        expected: TenderStatus,
        new: TenderStatus,
        updated_at: datetime,
    ) -> bool: ...

    def insert_application(self, application: Application) -> Application: ...

    def get_application(self, application_id: str) -> Application | None: ...

    def find_application(self, tender_id: str, company_id: str) -> Application | None: ...

    def list_applications(
        self,
        *,
        company_id: str | None = None,
        tender_owner_id: str | None = None,
        tender_id: str | None = None,
        status: ApplicationStatus | None = None,
    ) -> list[Application]: ...

    def update_application_status_if(
        self,
        application_id: str,
        expected: ApplicationStatus,
        new: ApplicationStatus,
        decided_by: str,
        decided_at: datetime,
    ) -> bool: ...

    def get_company(self, company_id: str) -> Company | None: ...

    def create_company_for_user(self, company: Company, user_id: str) -> bool: ...

    def get_user(self, user_id: str) -> User | None: ...

    def insert_user(self, user: User) -> User: ...

    def assign_user_company(self, user_id: str, company_id: str) -> bool: ...

    def count_tenders(self, company_id: str) -> int: ...

    def count_applications(
        self,
        *,
        company_id: str | None = None,
        tender_owner_id: str | None = None,
        status: ApplicationStatus | None = None,
    ) -> int: ...

    def insert_goods_service(self, goods_service: GoodsService) -> GoodsService: ...

    def get_goods_services(self, goods_service_ids: list[str]) -> list[GoodsService]: ...

    def find_goods_service_by_name(self, name: str) -> GoodsService | None: ...

    def list_goods_services(self) -> list[GoodsService]: ...

    def add_company_goods_services(
        self, company_id: str, goods_service_ids: list[str]
    ) -> int: ...

    def list_company_goods_services(self, company_id: str) -> list[GoodsService]: ...

    def count_rows(self) -> dict[str, int]: ...


class SQLiteStore:
    """
    SQLite implementation of PersistenceStore

    One short-lived connection per call; every write commits or rolls back as
    a unit. sqlite3.OperationalError (locked database, unreadable file)
    surfaces as StoreUnavailableError.
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize store with SQLite database

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database connections

        Translates operational failures into StoreUnavailableError and always
        closes the connection.
        """
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        except sqlite3.OperationalError as e:
            raise StoreUnavailableError(f"Cannot open store at {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
        except sqlite3.OperationalError as e:
            conn.rollback()
            logger.error("Store operation failed", error=str(e), db_path=str(self.db_path))
            raise StoreUnavailableError(f"Store unavailable: {e}") from e
        finally:
            conn.close()

    # ========================================================================
    # Tenders
    # ========================================================================

    def insert_tender(self, tender: Tender) -> Tender:
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO tenders (
                        tender_id, title, description, category, deadline, budget,
                        company_id, created_by, status, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        tender.tender_id,
                        tender.title,
                        tender.description,
                        tender.category,
                        tender.deadline.isoformat(),
                        str(tender.budget),
                        tender.company_id,
                        tender.created_by,
                        tender.status.value,
                        tender.created_at.isoformat(),
                        tender.updated_at.isoformat(),
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ValidationError(f"Tender references unknown records: {e}") from e
        return tender

    def get_tender(self, tender_id: str) -> Tender | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tenders WHERE tender_id = ?", (tender_id,)
            ).fetchone()
        return self._row_to_tender(row) if row else None

    def list_tenders(
        self, company_id: str | None = None, stored_status: TenderStatus | None = None
    ) -> list[Tender]:
        """
        List tenders, optionally narrowed by owner and stored status

        Effective-status filtering is the caller's job; this only pushes down
        what the stored columns can answer.
        """
        conditions = []
        params: list[Any] = []
        if company_id is not None:
            conditions.append("company_id = ?")
            params.append(company_id)
        if stored_status is not None:
            conditions.append("status = ?")
            params.append(stored_status.value)
        where_clause = " AND ".join(conditions) if conditions else "1=1"

        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM tenders WHERE {where_clause} "
                "ORDER BY created_at DESC, tender_id DESC",
                params,
            ).fetchall()
        return [self._row_to_tender(row) for row in rows]

    def count_tenders(self, company_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM tenders WHERE company_id = ?", (company_id,)
            ).fetchone()
        return row[0]

    def list_overdue_active_tenders(self, now: datetime) -> list[Tender]:
        # ISO-8601 UTC strings compare chronologically
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tenders WHERE status = ? AND deadline < ? "
                "ORDER BY deadline ASC",
                (TenderStatus.ACTIVE.value, now.isoformat()),
            ).fetchall()
        return [self._row_to_tender(row) for row in rows]

    def update_tender_status_if(
        self,
        tender_id: str,
        expected: TenderStatus,
        new: TenderStatus,
        updated_at: datetime,
    ) -> bool:
        """
        Compare-and-swap the stored status

        Returns:
            True if this call moved the tender from expected to new,
            False if the stored status was no longer expected
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE tenders SET status = ?, updated_at = ? "
                "WHERE tender_id = ? AND status = ?",
                (new.value, updated_at.isoformat(), tender_id, expected.value),
            )
            conn.commit()
            return cursor.rowcount == 1

    # ========================================================================
    # Applications
    # ========================================================================

    def insert_application(self, application: Application) -> Application:
        """
        Insert a new application

        Raises:
            DuplicateApplicationError: If the (tender, company) pair already
                exists - the authoritative guard behind the core's pre-check
        """
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO applications (
                        application_id, tender_id, company_id, status,
                        quotation_amount, proposal_text, created_at,
                        decided_at, decided_by
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        application.application_id,
                        application.tender_id,
                        application.company_id,
                        application.status.value,
                        str(application.quotation_amount),
                        application.proposal_text,
                        application.created_at.isoformat(),
                        None,
                        None,
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                error_msg = str(e).lower()
                if "unique" in error_msg and "tender_id" in error_msg:
                    raise DuplicateApplicationError(
                        application.tender_id, application.company_id
                    ) from e
                raise ValidationError(f"Application references unknown records: {e}") from e
        return application

    def get_application(self, application_id: str) -> Application | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM applications WHERE application_id = ?", (application_id,)
            ).fetchone()
        return self._row_to_application(row) if row else None

    def find_application(self, tender_id: str, company_id: str) -> Application | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM applications WHERE tender_id = ? AND company_id = ?",
                (tender_id, company_id),
            ).fetchone()
        return self._row_to_application(row) if row else None

    def list_applications(
        self,
        *,
        company_id: str | None = None,
        tender_owner_id: str | None = None,
        tender_id: str | None = None,
        status: ApplicationStatus | None = None,
    ) -> list[Application]:
        """
        List applications, newest first

        Args:
            company_id: Only applications submitted by this company
            tender_owner_id: Only applications against this company's tenders
            tender_id: Only applications for this tender
            status: Only applications in this status

        When both company_id and tender_owner_id are given, an application
        matching either is returned.
        """
        conditions = []
        params: list[Any] = []

        ownership = []
        if company_id is not None:
            ownership.append("a.company_id = ?")
            params.append(company_id)
        if tender_owner_id is not None:
            ownership.append("t.company_id = ?")
            params.append(tender_owner_id)
        if ownership:
            conditions.append("(" + " OR ".join(ownership) + ")")

        if tender_id is not None:
            conditions.append("a.tender_id = ?")
            params.append(tender_id)

        if status is not None:
            conditions.append("a.status = ?")
            params.append(status.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"

        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT a.* FROM applications a
                JOIN tenders t ON t.tender_id = a.tender_id
                WHERE {where_clause}
                ORDER BY a.created_at DESC, a.application_id DESC
            """,
                params,
            ).fetchall()
        return [self._row_to_application(row) for row in rows]

    def update_application_status_if(
        self,
        application_id: str,
        expected: ApplicationStatus,
        new: ApplicationStatus,
        decided_by: str,
        decided_at: datetime,
    ) -> bool:
        """Compare-and-swap the application status (see update_tender_status_if)"""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE applications SET status = ?, decided_by = ?, decided_at = ? "
                "WHERE application_id = ? AND status = ?",
                (
                    new.value,
                    decided_by,
                    decided_at.isoformat(),
                    application_id,
                    expected.value,
                ),
            )
            conn.commit()
            return cursor.rowcount == 1

    def count_applications(
        self,
        *,
        company_id: str | None = None,
        tender_owner_id: str | None = None,
        status: ApplicationStatus | None = None,
    ) -> int:
        """Count applications submitted by, or received by, a company"""
        conditions = []
        params: list[Any] = []
        if company_id is not None:
            conditions.append("a.company_id = ?")
            params.append(company_id)
        if tender_owner_id is not None:
            conditions.append("t.company_id = ?")
            params.append(tender_owner_id)
        if status is not None:
            conditions.append("a.status = ?")
            params.append(status.value)
        where_clause = " AND ".join(conditions) if conditions else "1=1"

        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT COUNT(*) FROM applications a
                JOIN tenders t ON t.tender_id = a.tender_id
                WHERE {where_clause}
            """,
                params,
            ).fetchone()
        return row[0]

    # ========================================================================
    # Companies & Users
    # ========================================================================

    def get_company(self, company_id: str) -> Company | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM companies WHERE company_id = ?", (company_id,)
            ).fetchone()
        return Company.model_validate(dict(row)) if row else None

    def create_company_for_user(self, company: Company, user_id: str) -> bool:
        """
        Insert a company and link the onboarding user to it, atomically

        Returns:
            False (and inserts nothing) if the user already belongs to a
            company or does not exist

        Raises:
            DuplicateCompanyError: If the company name is taken
        """
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO companies (
                        company_id, name, industry, description, logo_url, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                    (
                        company.company_id,
                        company.name,
                        company.industry,
                        company.description,
                        company.logo_url,
                        company.created_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise DuplicateCompanyError(company.name) from e

            cursor = conn.execute(
                "UPDATE users SET company_id = ? WHERE user_id = ? AND company_id IS NULL",
                (company.company_id, user_id),
            )
            if cursor.rowcount != 1:
                conn.rollback()
                return False
            conn.commit()
            return True

    def insert_user(self, user: User) -> User:
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users (
                        user_id, email, credential_hash, full_name, role,
                        company_id, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        user.user_id,
                        user.email,
                        user.credential_hash,
                        user.full_name,
                        user.role.value,
                        user.company_id,
                        user.created_at.isoformat(),
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                if "email" in str(e).lower():
                    raise ValidationError(f"Email {user.email} is already registered") from e
                raise ValidationError(f"User references unknown records: {e}") from e
        return user

    def get_user(self, user_id: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE user_id = ?", (user_id,)
            ).fetchone()
        return User.model_validate(dict(row)) if row else None

    def assign_user_company(self, user_id: str, company_id: str) -> bool:
        """
        Attach an unattached user to a company

        Returns:
            False if the user does not exist or already belongs to a company
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET company_id = ? WHERE user_id = ? AND company_id IS NULL",
                (company_id, user_id),
            )
            conn.commit()
            return cursor.rowcount == 1

    # ========================================================================
    # Goods & Services
    # ========================================================================

    def insert_goods_service(self, goods_service: GoodsService) -> GoodsService:
        with self._connect() as conn:
            try:
                conn.execute(
                    "INSERT INTO goods_services (goods_service_id, name, category, description) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        goods_service.goods_service_id,
                        goods_service.name,
                        goods_service.category,
                        goods_service.description,
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ValidationError(
                    f"Goods/service '{goods_service.name}' already exists"
                ) from e
        return goods_service

    def get_goods_services(self, goods_service_ids: list[str]) -> list[GoodsService]:
        if not goods_service_ids:
            return []
        placeholders = ", ".join("?" for _ in goods_service_ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM goods_services WHERE goods_service_id IN ({placeholders}) "
                "ORDER BY name",
                list(goods_service_ids),
            ).fetchall()
        return [GoodsService.model_validate(dict(row)) for row in rows]

    def find_goods_service_by_name(self, name: str) -> GoodsService | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM goods_services WHERE name = ?", (name.strip(),)
            ).fetchone()
        return GoodsService.model_validate(dict(row)) if row else None

    def list_goods_services(self) -> list[GoodsService]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM goods_services ORDER BY name").fetchall()
        return [GoodsService.model_validate(dict(row)) for row in rows]

    def add_company_goods_services(
        self, company_id: str, goods_service_ids: list[str]
    ) -> int:
        """
        Tag a company with goods/services; already-present tags are ignored

        Returns:
            Number of tags actually added
        """
        with self._connect() as conn:
            added = 0
            for goods_service_id in goods_service_ids:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO company_goods_services "
                    "(company_id, goods_service_id) VALUES (?, ?)",
                    (company_id, goods_service_id),
                )
                added += cursor.rowcount
            conn.commit()
            return added

    def list_company_goods_services(self, company_id: str) -> list[GoodsService]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT g.* FROM goods_services g
                JOIN company_goods_services cg ON cg.goods_service_id = g.goods_service_id
                WHERE cg.company_id = ?
                ORDER BY g.name
            """,
                (company_id,),
            ).fetchall()
        return [GoodsService.model_validate(dict(row)) for row in rows]

    # ========================================================================
    # Introspection
    # ========================================================================

    def count_rows(self) -> dict[str, int]:
        """Row count per table (health checks)"""
        with self._connect() as conn:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in TABLES
            }

    # ========================================================================
    # Row conversion
    # ========================================================================

    def _row_to_tender(self, row: sqlite3.Row) -> Tender:
        data = dict(row)
        data["budget"] = Decimal(data["budget"])
        return Tender.model_validate(data)

    def _row_to_application(self, row: sqlite3.Row) -> Application:
        data = dict(row)
        data["quotation_amount"] = Decimal(data["quotation_amount"])
        return Application.model_validate(data)
