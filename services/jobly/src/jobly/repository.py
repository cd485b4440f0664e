from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import bcrypt

from jobly.db import Database
from jobly.errors import BadRequestError, NotFoundError, UnauthorizedError
from jobly.schemas import (
    BCRYPT_MAX_PASSWORD_BYTES,
    Application,
    Company,
    CompanyFilter,
    CompanyNew,
    Job,
    JobFilter,
    JobNew,
    User,
    UserDetail,
    UserNew,
    UserRegister,
)
from jobly.sql import sql_for_company_filter, sql_for_job_filter, sql_for_partial_update

LOGGER = logging.getLogger("jobly.repository")

COMPANY_COLUMNS = """
    handle,
    name,
    description,
    num_employees AS "numEmployees",
    logo_url AS "logoUrl"
"""

JOB_COLUMNS = """
    id,
    title,
    salary,
    equity,
    company_handle
"""

USER_COLUMNS = """
    username,
    first_name AS "firstName",
    last_name AS "lastName",
    email,
    is_admin AS "isAdmin"
"""


def equity_to_text(value: float | None) -> str | None:
    """Render equity the way a NUMERIC column would hand it back: 0.1 -> "0.1"."""
    if value is None:
        return None
    return format(Decimal(repr(float(value))), "f")


class Repository:
    def __init__(self, database: Database) -> None:
        self.database = database

    @property
    def connection(self) -> sqlite3.Connection:
        return self.database.connection


class CompanyRepository(Repository):
    JS_TO_SQL = {"numEmployees": "num_employees", "logoUrl": "logo_url"}

    def create(self, payload: CompanyNew) -> Company:
        with self.database.lock:
            duplicate = self.connection.execute(
                "SELECT handle FROM companies WHERE handle = ?1",
                (payload.handle,),
            ).fetchone()
            if duplicate is not None:
                raise BadRequestError(f"Duplicate company: {payload.handle}")

            try:
                self.connection.execute(
                    """
                    INSERT INTO companies (handle, name, description, num_employees, logo_url)
                    VALUES (?1, ?2, ?3, ?4, ?5)
                    """,
                    (
                        payload.handle,
                        payload.name,
                        payload.description,
                        payload.num_employees,
                        payload.logo_url,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                raise BadRequestError(f"Duplicate company: {payload.handle}") from exc
            self.connection.commit()
            return self.get(payload.handle)

    def find_all(self, filters: CompanyFilter | None = None) -> list[Company]:
        fragment = sql_for_company_filter(filters)
        with self.database.lock:
            cursor = self.connection.execute(
                f"SELECT {COMPANY_COLUMNS} FROM companies{fragment.where} ORDER BY name",
                fragment.values,
            )
            return [Company.model_validate(dict(row)) for row in cursor.fetchall()]

    def get(self, handle: str) -> Company:
        with self.database.lock:
            row = self.connection.execute(
                f"SELECT {COMPANY_COLUMNS} FROM companies WHERE handle = ?1",
                (handle,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"No company: {handle}")
        return Company.model_validate(dict(row))

    def update(self, handle: str, data: Mapping[str, Any]) -> Company:
        fragment = sql_for_partial_update(data, self.JS_TO_SQL)
        with self.database.lock:
            try:
                cursor = self.connection.execute(
                    f"UPDATE companies SET {fragment.set_cols} "
                    f"WHERE handle = {fragment.next_placeholder}",
                    (*fragment.values, handle),
                )
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                raise BadRequestError(f"Conflicting company data for: {handle}") from exc
            if cursor.rowcount == 0:
                self.connection.rollback()
                raise NotFoundError(f"No company: {handle}")
            self.connection.commit()
            return self.get(handle)

    def remove(self, handle: str) -> None:
        with self.database.lock:
            cursor = self.connection.execute(
                "DELETE FROM companies WHERE handle = ?1",
                (handle,),
            )
            if cursor.rowcount == 0:
                self.connection.rollback()
                raise NotFoundError(f"No company: {handle}")
            self.connection.commit()


class JobRepository(Repository):
    """Jobs; ``id`` and ``company_handle`` are fixed once a job exists."""

    def create(self, payload: JobNew) -> Job:
        with self.database.lock:
            company = self.connection.execute(
                "SELECT handle FROM companies WHERE handle = ?1",
                (payload.company_handle,),
            ).fetchone()
            if company is None:
                raise NotFoundError(f"No company: {payload.company_handle}")

            cursor = self.connection.execute(
                """
                INSERT INTO jobs (title, salary, equity, company_handle)
                VALUES (?1, ?2, ?3, ?4)
                """,
                (
                    payload.title,
                    payload.salary,
                    equity_to_text(payload.equity),
                    payload.company_handle,
                ),
            )
            job_id = int(cursor.lastrowid)
            self.connection.commit()
            LOGGER.debug("created job %s for %s", job_id, payload.company_handle)
            return self.get(job_id)

    def find_all(self, filters: JobFilter | None = None) -> list[Job]:
        fragment = sql_for_job_filter(filters)
        with self.database.lock:
            cursor = self.connection.execute(
                f"SELECT {JOB_COLUMNS} FROM jobs{fragment.where} ORDER BY title",
                fragment.values,
            )
            return [Job.model_validate(dict(row)) for row in cursor.fetchall()]

    def get(self, job_id: int) -> Job:
        with self.database.lock:
            row = self.connection.execute(
                f"SELECT {JOB_COLUMNS} FROM jobs WHERE id = ?1",
                (job_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"No job: {job_id}")
        return Job.model_validate(dict(row))

    def update(self, job_id: int, data: Mapping[str, Any]) -> Job:
        changes = dict(data)
        if "equity" in changes:
            changes["equity"] = equity_to_text(changes["equity"])
        fragment = sql_for_partial_update(changes, {})
        with self.database.lock:
            cursor = self.connection.execute(
                f"UPDATE jobs SET {fragment.set_cols} WHERE id = {fragment.next_placeholder}",
                (*fragment.values, job_id),
            )
            if cursor.rowcount == 0:
                self.connection.rollback()
                raise NotFoundError(f"No job: {job_id}")
            self.connection.commit()
            return self.get(job_id)

    def remove(self, job_id: int) -> None:
        with self.database.lock:
            cursor = self.connection.execute("DELETE FROM jobs WHERE id = ?1", (job_id,))
            if cursor.rowcount == 0:
                self.connection.rollback()
                raise NotFoundError(f"No job: {job_id}")
            self.connection.commit()


class UserRepository(Repository):
    JS_TO_SQL = {"firstName": "first_name", "lastName": "last_name", "isAdmin": "is_admin"}

    def __init__(self, database: Database, *, bcrypt_work_factor: int) -> None:
        super().__init__(database)
        self.bcrypt_work_factor = bcrypt_work_factor
        # compared against when the username is unknown, so both failures cost a bcrypt check
        self._dummy_hash = self.hash_password("jobly-unknown-user")

    def hash_password(self, password: str) -> str:
        if len(password.encode()) > BCRYPT_MAX_PASSWORD_BYTES:
            raise BadRequestError(
                f"Password cannot be longer than {BCRYPT_MAX_PASSWORD_BYTES} bytes"
            )
        salt = bcrypt.gensalt(rounds=self.bcrypt_work_factor)
        return bcrypt.hashpw(password.encode(), salt).decode()

    def authenticate(self, username: str, password: str) -> User:
        with self.database.lock:
            row = self.connection.execute(
                f"SELECT password, {USER_COLUMNS} FROM users WHERE username = ?1",
                (username,),
            ).fetchone()

        hashed = row["password"] if row is not None else self._dummy_hash
        try:
            is_valid = bcrypt.checkpw(password.encode(), hashed.encode())
        except ValueError:
            # bcrypt 5 refuses passwords over 72 bytes instead of truncating them
            is_valid = False
        if row is not None and is_valid:
            user = dict(row)
            del user["password"]
            return User.model_validate(user)
        raise UnauthorizedError("Invalid username/password")

    def register(self, payload: UserRegister | UserNew) -> User:
        with self.database.lock:
            duplicate = self.connection.execute(
                "SELECT username FROM users WHERE username = ?1",
                (payload.username,),
            ).fetchone()
        if duplicate is not None:
            raise BadRequestError(f"Duplicate username: {payload.username}")

        hashed_password = self.hash_password(payload.password)
        is_admin = payload.is_admin if isinstance(payload, UserNew) else False

        with self.database.lock:
            try:
                self.connection.execute(
                    """
                    INSERT INTO users (username, password, first_name, last_name, email, is_admin)
                    VALUES (?1, ?2, ?3, ?4, ?5, ?6)
                    """,
                    (
                        payload.username,
                        hashed_password,
                        payload.first_name,
                        payload.last_name,
                        str(payload.email),
                        int(is_admin),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                raise BadRequestError(f"Duplicate username: {payload.username}") from exc
            self.connection.commit()
            return self._get_user(payload.username)

    def find_all(self) -> list[User]:
        with self.database.lock:
            cursor = self.connection.execute(
                f"SELECT {USER_COLUMNS} FROM users ORDER BY username"
            )
            return [User.model_validate(dict(row)) for row in cursor.fetchall()]

    def get(self, username: str) -> UserDetail:
        """Return the user along with the ids of the jobs they applied to."""
        with self.database.lock:
            user = self._get_user(username)
            cursor = self.connection.execute(
                "SELECT job_id FROM applications WHERE username = ?1 ORDER BY job_id",
                (username,),
            )
            jobs = [int(row["job_id"]) for row in cursor.fetchall()]
        return UserDetail(**user.model_dump(), jobs=jobs)

    def update(self, username: str, data: Mapping[str, Any]) -> User:
        """Partially update a user.

        Accepts any of ``firstName``, ``lastName``, ``password``, ``email`` and
        ``isAdmin``. A new password is hashed before it is stored. Callers must
        have decided already whether the requester may grant ``isAdmin``.
        """
        changes = dict(data)
        if changes.get("password"):
            changes["password"] = self.hash_password(changes["password"])
        if "email" in changes:
            changes["email"] = str(changes["email"])

        fragment = sql_for_partial_update(changes, self.JS_TO_SQL)
        with self.database.lock:
            cursor = self.connection.execute(
                f"UPDATE users SET {fragment.set_cols} "
                f"WHERE username = {fragment.next_placeholder}",
                (*fragment.values, username),
            )
            if cursor.rowcount == 0:
                self.connection.rollback()
                raise NotFoundError(f"No user: {username}")
            self.connection.commit()
            return self._get_user(username)

    def remove(self, username: str) -> None:
        with self.database.lock:
            cursor = self.connection.execute(
                "DELETE FROM users WHERE username = ?1",
                (username,),
            )
            if cursor.rowcount == 0:
                self.connection.rollback()
                raise NotFoundError(f"No user: {username}")
            self.connection.commit()

    def apply_to_job(self, username: str, job_id: int) -> Application:
        with self.database.lock:
            if self._fetch_one("SELECT username FROM users WHERE username = ?1", username) is None:
                raise NotFoundError(f"No user: {username}")
            if self._fetch_one("SELECT id FROM jobs WHERE id = ?1", job_id) is None:
                raise NotFoundError(f"No job: {job_id}")

            existing = self._fetch_one(
                "SELECT 1 FROM applications WHERE username = ?1 AND job_id = ?2",
                username,
                job_id,
            )
            if existing is not None:
                raise BadRequestError("You have already applied to this job")

            try:
                self.connection.execute(
                    "INSERT INTO applications (username, job_id) VALUES (?1, ?2)",
                    (username, job_id),
                )
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                raise BadRequestError("You have already applied to this job") from exc
            self.connection.commit()
            return Application(username=username, job_id=job_id)

    def _fetch_one(self, query: str, *params: Any) -> sqlite3.Row | None:
        return self.connection.execute(query, params).fetchone()

    def _get_user(self, username: str) -> User:
        row = self._fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE username = ?1", username)
        if row is None:
            raise NotFoundError(f"No user: {username}")
        return User.model_validate(dict(row))
