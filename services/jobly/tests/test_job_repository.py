from __future__ import annotations

import pytest
from jobly.errors import BadRequestError, NotFoundError
from jobly.repository import JobRepository, equity_to_text
from jobly.schemas import Job, JobFilter, JobNew

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("seeded")]


@pytest.fixture
def two_jobs(job_repository: JobRepository) -> list[Job]:
    return [
        job_repository.create(
            JobNew(title="Job 1", salary=100, equity=0.1, company_handle="c1")
        ),
        job_repository.create(
            JobNew(title="Job 2", salary=150, equity=0.2, company_handle="c2")
        ),
    ]


def test_create_returns_equity_as_text(job_repository: JobRepository) -> None:
    job = job_repository.create(
        JobNew(title="title", salary=100, equity=0.1, company_handle="c1")
    )
    assert isinstance(job.id, int)
    assert job.model_dump() == {
        "id": job.id,
        "title": "title",
        "salary": 100,
        "equity": "0.1",
        "company_handle": "c1",
    }


def test_create_then_get_round_trip(job_repository: JobRepository) -> None:
    created = job_repository.create(JobNew(title="Analyst", company_handle="c3"))
    fetched = job_repository.get(created.id)
    assert fetched == created
    assert fetched.salary is None
    assert fetched.equity is None


def test_create_for_unknown_company(job_repository: JobRepository) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        job_repository.create(JobNew(title="Ghost", company_handle="nope"))
    assert excinfo.value.message == "No company: nope"


def test_find_all_orders_by_title(job_repository: JobRepository, two_jobs: list[Job]) -> None:
    assert job_repository.find_all() == two_jobs


def test_filter_scenarios(job_repository: JobRepository, two_jobs: list[Job]) -> None:
    matched = job_repository.find_all(JobFilter(title="Job", min_salary=100, has_equity=True))
    assert matched == two_jobs

    assert job_repository.find_all(JobFilter(title="Job", min_salary=200)) == []


def test_filter_title_is_case_insensitive_substring(
    job_repository: JobRepository,
    two_jobs: list[Job],
) -> None:
    assert job_repository.find_all(JobFilter(title="OB 2")) == [two_jobs[1]]


def test_filter_title_treats_wildcards_literally(
    job_repository: JobRepository,
    two_jobs: list[Job],
) -> None:
    percent_job = job_repository.create(JobNew(title="100% remote", company_handle="c1"))
    assert job_repository.find_all(JobFilter(title="%")) == [percent_job]
    assert job_repository.find_all(JobFilter(title="_")) == []


def test_unset_min_salary_keeps_salary_null_rows(job_repository: JobRepository) -> None:
    unpaid = job_repository.create(JobNew(title="Volunteer", company_handle="c1"))
    assert job_repository.find_all(JobFilter(title="Volunteer")) == [unpaid]
    assert job_repository.find_all(JobFilter(title="Volunteer", min_salary=0)) == []


def test_has_equity_excludes_zero_and_null(job_repository: JobRepository) -> None:
    with_equity = job_repository.create(
        JobNew(title="A", equity=0.05, company_handle="c1")
    )
    job_repository.create(JobNew(title="B", equity=0, company_handle="c1"))
    job_repository.create(JobNew(title="C", company_handle="c1"))

    assert job_repository.find_all(JobFilter(has_equity=True)) == [with_equity]
    assert len(job_repository.find_all(JobFilter(has_equity=False))) == 3


def test_filter_by_company_handle(job_repository: JobRepository, two_jobs: list[Job]) -> None:
    assert job_repository.find_all(JobFilter(company_handle="c2")) == [two_jobs[1]]


def test_get_not_found(job_repository: JobRepository) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        job_repository.get(999)
    assert excinfo.value.message == "No job: 999"


def test_update(job_repository: JobRepository, two_jobs: list[Job]) -> None:
    job = job_repository.update(
        two_jobs[0].id,
        {"title": "Updated Job Title", "salary": 120, "equity": 0.2},
    )
    assert job.model_dump() == {
        "id": two_jobs[0].id,
        "title": "Updated Job Title",
        "salary": 120,
        "equity": "0.2",
        "company_handle": "c1",
    }


def test_update_with_no_data(job_repository: JobRepository, two_jobs: list[Job]) -> None:
    with pytest.raises(BadRequestError) as excinfo:
        job_repository.update(two_jobs[0].id, {})
    assert excinfo.value.message == "No data"


def test_update_not_found(job_repository: JobRepository) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        job_repository.update(999, {"title": "x"})
    assert excinfo.value.message == "No job: 999"


def test_remove(job_repository: JobRepository, two_jobs: list[Job]) -> None:
    job_repository.remove(two_jobs[0].id)
    with pytest.raises(NotFoundError):
        job_repository.get(two_jobs[0].id)


def test_remove_not_found(job_repository: JobRepository) -> None:
    with pytest.raises(NotFoundError):
        job_repository.remove(999)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.1, "0.1"), (0.25, "0.25"), (1, "1.0"), (0, "0.0"), (None, None)],
)
def test_equity_to_text(value: float | None, expected: str | None) -> None:
    assert equity_to_text(value) == expected
