import json
import sqlite3
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from src.core.ports.db import (
    CourseNotFound,
    DuplicatePendingPayment,
    EntitlementMerge,
    EntitlementWriteConflict,
    ProfileNotFound,
)
from src.domain.entities import (
    Course,
    PaymentRecord,
    PaymentStatus,
    RoleType,
    UserProfile,
)


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def _ts(dt: datetime) -> str:
    # Fixed-width UTC text so timestamps compare correctly as strings
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def _parse_dt(s: str | None) -> datetime | None:
    return datetime.fromisoformat(s) if s else None


def _is_lock_error(e: sqlite3.OperationalError) -> bool:
    message = str(e).lower()
    return "locked" in message or "busy" in message


class _SQLiteRepo:
    def __init__(self, db_path: str, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn


class SQLiteCourseCatalog(_SQLiteRepo):
    def save_course(self, course: Course) -> Course:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO courses (id, title, instructor_id, description, price, currency, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title,
                    instructor_id=excluded.instructor_id,
                    description=excluded.description,
                    price=excluded.price,
                    currency=excluded.currency
            """,
                (
                    course.id,
                    course.title,
                    course.instructor_id,
                    course.description,
                    str(course.price) if course.price is not None else None,
                    course.currency,
                    _ts(course.created_at),
                ),
            )

            conn.execute("DELETE FROM content_units WHERE course_id = ?", (course.id,))
            for i, unit in enumerate(course.units):
                conn.execute(
                    """
                    INSERT INTO content_units (id, course_id, kind, position, data_json)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (unit.id, course.id, unit.kind, i, unit.model_dump_json()),
                )

            conn.commit()
            return course
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_course(self, course_id: str) -> Course:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
            if not row:
                raise CourseNotFound(course_id)
            return self._row_to_course(conn, row)
        finally:
            conn.close()

    def list_courses(self) -> list[Course]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM courses ORDER BY created_at ASC").fetchall()
            return [self._row_to_course(conn, r) for r in rows]
        finally:
            conn.close()

    def _row_to_course(self, conn: sqlite3.Connection, row: dict[str, Any]) -> Course:
        unit_rows = conn.execute(
            "SELECT data_json FROM content_units WHERE course_id = ? ORDER BY position ASC",
            (row["id"],),
        ).fetchall()
        return Course.model_validate(
            {
                "id": row["id"],
                "title": row["title"],
                "instructor_id": row["instructor_id"],
                "description": row["description"],
                "price": Decimal(row["price"]) if row["price"] is not None else None,
                "currency": row["currency"],
                "created_at": _parse_dt(row["created_at"]),
                "units": [json.loads(u["data_json"]) for u in unit_rows],
            }
        )


class SQLiteUserProfileRepo(_SQLiteRepo):
    """
    Entitlement store on SQLite.

    Set members are rows; a merge is INSERT OR IGNORE inside one
    BEGIN IMMEDIATE transaction, so concurrent merges for one user
    serialize on the write lock and never lose a member.
    """

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        conn = self._get_conn()
        try:
            return self._load(conn, user_id)
        finally:
            conn.close()

    def create_profile(self, profile: UserProfile) -> UserProfile:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT OR IGNORE INTO user_profiles (id, role, display_name, created_at)
                VALUES (?, ?, ?, ?)
            """,
                (profile.id, profile.role, profile.display_name, _ts(profile.created_at)),
            )
            conn.commit()
            stored = self._load(conn, profile.id)
            if stored is None:
                raise ProfileNotFound(profile.id)
            return stored
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def set_role(self, user_id: str, role: RoleType) -> UserProfile:
        conn = self._get_conn()
        try:
            cursor = conn.execute("UPDATE user_profiles SET role = ? WHERE id = ?", (role, user_id))
            if cursor.rowcount == 0:
                raise ProfileNotFound(user_id)
            conn.commit()
            stored = self._load(conn, user_id)
            if stored is None:
                raise ProfileNotFound(user_id)
            return stored
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def atomic_merge_entitlement(self, user_id: str, merge: EntitlementMerge) -> UserProfile:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = dict_factory
        try:
            conn.execute("PRAGMA foreign_keys = ON;")
            conn.execute("BEGIN IMMEDIATE")

            exists = conn.execute("SELECT 1 FROM user_profiles WHERE id = ?", (user_id,)).fetchone()
            if not exists:
                raise ProfileNotFound(user_id)

            now = _ts(datetime.now(UTC))
            if merge.add_course is not None:
                conn.execute(
                    """
                    INSERT OR IGNORE INTO user_enrollments (user_id, course_id, idempotency_key, granted_at)
                    VALUES (?, ?, ?, ?)
                """,
                    (user_id, merge.add_course, merge.idempotency_key, now),
                )
            if merge.add_unit is not None:
                conn.execute(
                    """
                    INSERT OR IGNORE INTO user_purchases (user_id, unit_id, idempotency_key, granted_at)
                    VALUES (?, ?, ?, ?)
                """,
                    (user_id, merge.add_unit, merge.idempotency_key, now),
                )

            profile = self._load(conn, user_id)
            if profile is None:
                raise ProfileNotFound(user_id)
            conn.execute("COMMIT")
            return profile
        except sqlite3.OperationalError as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            if _is_lock_error(e):
                raise EntitlementWriteConflict(user_id, str(e)) from e
            raise
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _load(self, conn: sqlite3.Connection, user_id: str) -> UserProfile | None:
        row = conn.execute("SELECT * FROM user_profiles WHERE id = ?", (user_id,)).fetchone()
        if not row:
            return None
        courses = conn.execute(
            "SELECT course_id FROM user_enrollments WHERE user_id = ?", (user_id,)
        ).fetchall()
        units = conn.execute(
            "SELECT unit_id FROM user_purchases WHERE user_id = ?", (user_id,)
        ).fetchall()
        return UserProfile(
            id=row["id"],
            role=row["role"],
            display_name=row["display_name"],
            enrolled_course_ids=frozenset(r["course_id"] for r in courses),
            purchased_unit_ids=frozenset(r["unit_id"] for r in units),
            created_at=_parse_dt(row["created_at"]),
        )


class SQLitePaymentLedger(_SQLiteRepo):
    """Append-only payment ledger. Terminal transitions are conditional updates."""

    def append(self, record: PaymentRecord) -> PaymentRecord:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO payment_records (
                    transaction_id, provider, provider_reference, user_id,
                    item_kind, item_id, course_id, amount, currency, status,
                    failure_reason, created_at, expires_at, resolved_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    record.transaction_id,
                    record.provider,
                    record.provider_reference,
                    record.user_id,
                    record.item_kind,
                    record.item_id,
                    record.course_id,
                    str(record.amount),
                    record.currency,
                    record.status,
                    record.failure_reason,
                    _ts(record.created_at),
                    _ts(record.expires_at),
                    _ts(record.resolved_at) if record.resolved_at else None,
                ),
            )
            conn.commit()
            return record
        except sqlite3.IntegrityError as e:
            conn.rollback()
            message = str(e)
            if "UNIQUE" not in message:
                raise
            if "transaction_id" in message:
                raise ValueError(f"Transaction {record.transaction_id} already recorded") from e
            raise DuplicatePendingPayment(record.user_id, record.item_id) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, transaction_id: str) -> PaymentRecord | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM payment_records WHERE transaction_id = ?", (transaction_id,)
            ).fetchone()
            return self._row_to_record(row) if row else None
        finally:
            conn.close()

    def find_pending(self, user_id: str, item_id: str) -> PaymentRecord | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT * FROM payment_records
                WHERE user_id = ? AND item_id = ? AND status = 'pending'
            """,
                (user_id, item_id),
            ).fetchone()
            return self._row_to_record(row) if row else None
        finally:
            conn.close()

    def mark_terminal(
        self,
        transaction_id: str,
        status: PaymentStatus,
        resolved_at: datetime,
        failure_reason: str | None = None,
    ) -> PaymentRecord | None:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                UPDATE payment_records
                SET status = ?, resolved_at = ?, failure_reason = ?
                WHERE transaction_id = ? AND status = 'pending'
            """,
                (status, _ts(resolved_at), failure_reason, transaction_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT * FROM payment_records WHERE transaction_id = ?", (transaction_id,)
            ).fetchone()
            return self._row_to_record(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_pending_expired(self, now_utc: datetime) -> list[PaymentRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM payment_records
                WHERE status = 'pending' AND expires_at <= ?
                ORDER BY created_at ASC
            """,
                (_ts(now_utc),),
            ).fetchall()
            return [self._row_to_record(r) for r in rows]
        finally:
            conn.close()

    def list_by_status(
        self, status: PaymentStatus | None = None, limit: int = 100
    ) -> list[PaymentRecord]:
        conn = self._get_conn()
        try:
            if status is None:
                rows = conn.execute(
                    "SELECT * FROM payment_records ORDER BY created_at DESC LIMIT ?", (limit,)
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT * FROM payment_records WHERE status = ?
                    ORDER BY created_at DESC LIMIT ?
                """,
                    (status, limit),
                ).fetchall()
            return [self._row_to_record(r) for r in rows]
        finally:
            conn.close()

    def list_completed_after(
        self, after: PaymentRecord | None = None, limit: int = 1000
    ) -> list[PaymentRecord]:
        conn = self._get_conn()
        try:
            if after is None:
                rows = conn.execute(
                    """
                    SELECT * FROM payment_records WHERE status = 'completed'
                    ORDER BY created_at ASC, transaction_id ASC LIMIT ?
                """,
                    (limit,),
                ).fetchall()
            else:
                created = _ts(after.created_at)
                rows = conn.execute(
                    """
                    SELECT * FROM payment_records
                    WHERE status = 'completed'
                      AND (created_at > ? OR (created_at = ? AND transaction_id > ?))
                    ORDER BY created_at ASC, transaction_id ASC LIMIT ?
                """,
                    (created, created, after.transaction_id, limit),
                ).fetchall()
            return [self._row_to_record(r) for r in rows]
        finally:
            conn.close()

    def list_by_user(self, user_id: str) -> list[PaymentRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM payment_records WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
            return [self._row_to_record(r) for r in rows]
        finally:
            conn.close()

    def _row_to_record(self, row: dict[str, Any]) -> PaymentRecord:
        return PaymentRecord(
            transaction_id=row["transaction_id"],
            provider=row["provider"],
            provider_reference=row["provider_reference"],
            user_id=row["user_id"],
            item_kind=row["item_kind"],
            item_id=row["item_id"],
            course_id=row["course_id"],
            amount=Decimal(row["amount"]),
            currency=row["currency"],
            status=row["status"],
            failure_reason=row["failure_reason"],
            created_at=_parse_dt(row["created_at"]),
            expires_at=_parse_dt(row["expires_at"]),
            resolved_at=_parse_dt(row["resolved_at"]),
        )
