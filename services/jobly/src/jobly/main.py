from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Sequence
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Path, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from jobly.auth import (
    TokenClaims,
    create_token,
    decode_token,
    extract_bearer_token,
    require_admin,
    require_correct_user_or_admin,
)
from jobly.config import load_settings
from jobly.db import Database
from jobly.errors import BadRequestError, JoblyError, UnauthorizedError
from jobly.repository import CompanyRepository, JobRepository, UserRepository
from jobly.schemas import (
    SQLITE_MAX_INT,
    SQLITE_MIN_INT,
    AppliedResponse,
    CompanyFilter,
    CompanyListResponse,
    CompanyNew,
    CompanyResponse,
    CompanyUpdate,
    DeletedResponse,
    JobFilter,
    JobListResponse,
    JobNew,
    JobResponse,
    JobUpdate,
    TokenResponse,
    User,
    UserAuth,
    UserDetailResponse,
    UserListResponse,
    UserNew,
    UserRegister,
    UserResponse,
    UserTokenResponse,
    UserUpdate,
)

LOGGER = logging.getLogger("jobly.api")
REQUEST_LOCATIONS = ("body", "query", "path", "header")


def error_response(
    error: JoblyError,
    *,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_body(), headers=headers)


def format_validation_errors(errors: Sequence[Any]) -> list[str]:
    messages: list[str] = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in REQUEST_LOCATIONS]
        message = error.get("msg", "Invalid value")
        messages.append(f"{'.'.join(location)}: {message}" if location else message)
    return messages


def create_app(
    *,
    database_path: str | None = None,
    secret_key: str | None = None,
    bcrypt_work_factor: int | None = None,
    token_ttl_seconds: int | None = None,
    testing: bool | None = None,
) -> FastAPI:
    settings = load_settings(
        database_path=database_path,
        secret_key=secret_key,
        bcrypt_work_factor=bcrypt_work_factor,
        token_ttl_seconds=token_ttl_seconds,
        testing=testing,
    )
    database = Database(database_path=settings.database_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(database.connect)
        app.state.database = database
        app.state.companies = CompanyRepository(database)
        app.state.jobs = JobRepository(database)
        app.state.users = await run_in_threadpool(
            lambda: UserRepository(database, bcrypt_work_factor=settings.bcrypt_work_factor)
        )
        LOGGER.info(json.dumps({"event": "jobly_config", **settings.describe()}))
        try:
            yield
        finally:
            await run_in_threadpool(database.close)

    app = FastAPI(title="Jobly", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    def issue_token(user: User) -> str:
        return create_token(
            user,
            secret_key=settings.secret_key,
            ttl_seconds=settings.token_ttl_seconds,
        )

    @app.exception_handler(JoblyError)
    async def handle_jobly_error(request: Request, exc: JoblyError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        return error_response(BadRequestError(format_validation_errors(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"message": exc.detail, "status": exc.status_code}},
            headers=getattr(exc, "headers", None),
        )

    @app.middleware("http")
    async def authenticate_jwt(request: Request, call_next):
        request.state.user = None
        authorization = request.headers.get("authorization")
        if authorization:
            try:
                request.state.user = decode_token(
                    extract_bearer_token(authorization),
                    secret_key=settings.secret_key,
                )
            except UnauthorizedError as exc:
                return error_response(exc)
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            if not settings.testing:
                LOGGER.exception(
                    json.dumps(
                        {
                            "event": "request_complete",
                            "request_id": request_id,
                            "method": request.method,
                            "path": request.url.path,
                            "status_code": 500,
                            "duration_ms": round(duration_ms, 3),
                            "error": str(exc),
                        }
                    )
                )
            return error_response(JoblyError(), headers={"x-request-id": request_id})

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["x-request-id"] = request_id
        LOGGER.info(
            json.dumps(
                {
                    "event": "request_complete",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 3),
                    "source_ip": request.client.host if request.client else None,
                }
            )
        )
        return response

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "jobly"}

    # auth

    @app.post("/auth/token", response_model=TokenResponse)
    async def login(payload: UserAuth, request: Request) -> TokenResponse:
        user = await run_in_threadpool(
            request.app.state.users.authenticate,
            payload.username,
            payload.password,
        )
        return TokenResponse(token=issue_token(user))

    @app.post("/auth/register", response_model=TokenResponse, status_code=201)
    async def register(payload: UserRegister, request: Request) -> TokenResponse:
        user = await run_in_threadpool(request.app.state.users.register, payload)
        return TokenResponse(token=issue_token(user))

    # companies

    @app.post(
        "/companies",
        response_model=CompanyResponse,
        status_code=201,
        dependencies=[Depends(require_admin)],
    )
    async def create_company(payload: CompanyNew, request: Request) -> CompanyResponse:
        company = await run_in_threadpool(request.app.state.companies.create, payload)
        return CompanyResponse(company=company)

    @app.get("/companies", response_model=CompanyListResponse)
    async def list_companies(
        request: Request,
        name: str | None = None,
        min_employees: int | None = Query(
            default=None, alias="minEmployees", ge=0, le=SQLITE_MAX_INT
        ),
        max_employees: int | None = Query(
            default=None, alias="maxEmployees", ge=0, le=SQLITE_MAX_INT
        ),
    ) -> CompanyListResponse:
        filters = CompanyFilter(
            name=name,
            min_employees=min_employees,
            max_employees=max_employees,
        )
        companies = await run_in_threadpool(request.app.state.companies.find_all, filters)
        return CompanyListResponse(companies=companies)

    @app.get("/companies/{handle}", response_model=CompanyResponse)
    async def get_company(handle: str, request: Request) -> CompanyResponse:
        company = await run_in_threadpool(request.app.state.companies.get, handle)
        return CompanyResponse(company=company)

    @app.patch(
        "/companies/{handle}",
        response_model=CompanyResponse,
        dependencies=[Depends(require_admin)],
    )
    async def update_company(
        handle: str,
        payload: CompanyUpdate,
        request: Request,
    ) -> CompanyResponse:
        company = await run_in_threadpool(
            request.app.state.companies.update,
            handle,
            payload.changes(),
        )
        return CompanyResponse(company=company)

    @app.delete(
        "/companies/{handle}",
        response_model=DeletedResponse,
        dependencies=[Depends(require_admin)],
    )
    async def delete_company(handle: str, request: Request) -> DeletedResponse:
        await run_in_threadpool(request.app.state.companies.remove, handle)
        return DeletedResponse(deleted=handle)

    # jobs

    @app.post(
        "/jobs",
        response_model=JobResponse,
        status_code=201,
        dependencies=[Depends(require_admin)],
    )
    async def create_job(payload: JobNew, request: Request) -> JobResponse:
        job = await run_in_threadpool(request.app.state.jobs.create, payload)
        return JobResponse(job=job)

    @app.get("/jobs", response_model=JobListResponse)
    async def list_jobs(
        request: Request,
        title: str | None = None,
        min_salary: int | None = Query(
            default=None, alias="minSalary", ge=SQLITE_MIN_INT, le=SQLITE_MAX_INT
        ),
        has_equity: bool | None = Query(default=None, alias="hasEquity"),
        company_handle: str | None = Query(default=None, alias="companyHandle"),
    ) -> JobListResponse:
        filters = JobFilter(
            title=title,
            min_salary=min_salary,
            has_equity=bool(has_equity),
            company_handle=company_handle,
        )
        jobs = await run_in_threadpool(request.app.state.jobs.find_all, filters)
        return JobListResponse(jobs=jobs)

    @app.get("/jobs/{job_id}", response_model=JobResponse)
    async def get_job(
        request: Request,
        job_id: int = Path(ge=SQLITE_MIN_INT, le=SQLITE_MAX_INT),
    ) -> JobResponse:
        job = await run_in_threadpool(request.app.state.jobs.get, job_id)
        return JobResponse(job=job)

    @app.patch(
        "/jobs/{job_id}",
        response_model=JobResponse,
        dependencies=[Depends(require_admin)],
    )
    async def update_job(
        payload: JobUpdate,
        request: Request,
        job_id: int = Path(ge=SQLITE_MIN_INT, le=SQLITE_MAX_INT),
    ) -> JobResponse:
        job = await run_in_threadpool(request.app.state.jobs.update, job_id, payload.changes())
        return JobResponse(job=job)

    @app.delete(
        "/jobs/{job_id}",
        response_model=DeletedResponse,
        dependencies=[Depends(require_admin)],
    )
    async def delete_job(
        request: Request,
        job_id: int = Path(ge=SQLITE_MIN_INT, le=SQLITE_MAX_INT),
    ) -> DeletedResponse:
        await run_in_threadpool(request.app.state.jobs.remove, job_id)
        return DeletedResponse(deleted=str(job_id))

    # users

    @app.post(
        "/users",
        response_model=UserTokenResponse,
        status_code=201,
        dependencies=[Depends(require_admin)],
    )
    async def create_user(payload: UserNew, request: Request) -> UserTokenResponse:
        user = await run_in_threadpool(request.app.state.users.register, payload)
        return UserTokenResponse(user=user, token=issue_token(user))

    @app.get(
        "/users",
        response_model=UserListResponse,
        dependencies=[Depends(require_admin)],
    )
    async def list_users(request: Request) -> UserListResponse:
        users = await run_in_threadpool(request.app.state.users.find_all)
        return UserListResponse(users=users)

    @app.get(
        "/users/{username}",
        response_model=UserDetailResponse,
        dependencies=[Depends(require_correct_user_or_admin)],
    )
    async def get_user(username: str, request: Request) -> UserDetailResponse:
        user = await run_in_threadpool(request.app.state.users.get, username)
        return UserDetailResponse(user=user)

    @app.patch("/users/{username}", response_model=UserResponse)
    async def update_user(
        username: str,
        payload: UserUpdate,
        request: Request,
        claims: TokenClaims = Depends(require_correct_user_or_admin),
    ) -> UserResponse:
        changes = payload.changes()
        if "isAdmin" in changes and not claims.is_admin:
            raise UnauthorizedError("Only admins may change admin status")
        user = await run_in_threadpool(request.app.state.users.update, username, changes)
        return UserResponse(user=user)

    @app.delete(
        "/users/{username}",
        response_model=DeletedResponse,
        dependencies=[Depends(require_correct_user_or_admin)],
    )
    async def delete_user(username: str, request: Request) -> DeletedResponse:
        await run_in_threadpool(request.app.state.users.remove, username)
        return DeletedResponse(deleted=username)

    @app.post(
        "/users/{username}/jobs/{job_id}",
        response_model=AppliedResponse,
        status_code=201,
        dependencies=[Depends(require_correct_user_or_admin)],
    )
    async def apply_to_job(
        username: str,
        request: Request,
        job_id: int = Path(ge=SQLITE_MIN_INT, le=SQLITE_MAX_INT),
    ) -> AppliedResponse:
        application = await run_in_threadpool(
            request.app.state.users.apply_to_job,
            username,
            job_id,
        )
        return AppliedResponse(applied=application.job_id)

    return app


app = create_app()
