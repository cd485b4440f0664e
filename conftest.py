from __future__ import annotations

import importlib.util
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jobly.auth import create_token
from jobly.db import Database
from jobly.main import create_app
from jobly.repository import CompanyRepository, JobRepository, UserRepository
from jobly.schemas import CompanyNew, JobNew, User, UserNew

# BDD scenarios need pytest-bdd from the test extra.
# Skip collecting them when it is not installed.
if importlib.util.find_spec("pytest_bdd") is None:
    collect_ignore_glob = ["tests/bdd/*"]

TEST_SECRET_KEY = "test-secret-key"
TEST_WORK_FACTOR = 4

SEED_JOBS = [
    {"title": "Job 1", "salary": 100, "equity": 0.1, "company_handle": "c1"},
    {"title": "Job 2", "salary": 200, "equity": 0.2, "company_handle": "c1"},
    {"title": "Job 3", "salary": 300, "equity": 0, "company_handle": "c2"},
    {"title": "Job 4", "salary": None, "equity": None, "company_handle": "c3"},
]


def seed_companies_and_users(companies: CompanyRepository, users: UserRepository) -> None:
    for number in (1, 2, 3):
        companies.create(
            CompanyNew(
                handle=f"c{number}",
                name=f"C{number}",
                description=f"Desc{number}",
                num_employees=number,
                logo_url=f"http://c{number}.img",
            )
        )
    for number in (1, 2, 3):
        users.register(
            UserNew(
                username=f"u{number}",
                password=f"password{number}",
                first_name=f"U{number}F",
                last_name=f"U{number}L",
                email=f"user{number}@user.com",
                is_admin=number == 1,
            )
        )


def seed_jobs(jobs: JobRepository) -> list[int]:
    return [jobs.create(JobNew(**job)).id for job in SEED_JOBS]


def make_token(username: str, *, is_admin: bool = False) -> str:
    user = User(
        username=username,
        first_name="First",
        last_name="Last",
        email=f"{username}@user.com",
        is_admin=is_admin,
    )
    return create_token(user, secret_key=TEST_SECRET_KEY, ttl_seconds=3600)


def auth_header(token: str) -> dict[str, str]:
    return {"authorization": f"Bearer {token}"}


@pytest.fixture
def database(tmp_path: Path) -> Iterator[Database]:
    db = Database(str(tmp_path / "jobly.sqlite3"))
    db.connect()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def company_repository(database: Database) -> CompanyRepository:
    return CompanyRepository(database)


@pytest.fixture
def job_repository(database: Database) -> JobRepository:
    return JobRepository(database)


@pytest.fixture
def user_repository(database: Database) -> UserRepository:
    return UserRepository(database, bcrypt_work_factor=TEST_WORK_FACTOR)


@pytest.fixture
def seeded(company_repository: CompanyRepository, user_repository: UserRepository) -> None:
    seed_companies_and_users(company_repository, user_repository)


@pytest.fixture
def app(tmp_path: Path) -> FastAPI:
    return create_app(
        database_path=str(tmp_path / "jobly-api.sqlite3"),
        secret_key=TEST_SECRET_KEY,
        bcrypt_work_factor=TEST_WORK_FACTOR,
        testing=True,
    )


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        state = test_client.app.state
        seed_companies_and_users(state.companies, state.users)
        seed_jobs(state.jobs)
        yield test_client


@pytest.fixture
def job_ids(client: TestClient) -> list[int]:
    return [job.id for job in client.app.state.jobs.find_all()]


@pytest.fixture
def secret_key() -> str:
    return TEST_SECRET_KEY


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_header(make_token("u1", is_admin=True))


@pytest.fixture
def u2_headers() -> dict[str, str]:
    return auth_header(make_token("u2"))
