from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

URL_PATTERN = r"^https?://\S+$"
# SQLite INTEGER is a signed 64-bit value.
SQLITE_MIN_INT = -(2**63)
SQLITE_MAX_INT = 2**63 - 1
# bcrypt only looks at the first 72 bytes of a password.
BCRYPT_MAX_PASSWORD_BYTES = 72


def check_password_bytes(password: str | None) -> str | None:
    if password is not None and len(password.encode()) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(f"Password cannot be longer than {BCRYPT_MAX_PASSWORD_BYTES} bytes")
    return password


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RequestModel(ApiModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class PatchModel(RequestModel):
    """Sparse update body; only the fields the client sent are applied."""

    non_nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_fields(self) -> PatchModel:
        for name in sorted(self.model_fields_set & self.non_nullable):
            if getattr(self, name) is None:
                field = type(self).model_fields[name]
                raise ValueError(f"{field.alias or name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, by_alias=True)


class CompanyNew(RequestModel):
    handle: str = Field(..., min_length=1, max_length=25)
    name: str = Field(..., min_length=1)
    description: str
    num_employees: int | None = Field(
        default=None, alias="numEmployees", ge=0, le=SQLITE_MAX_INT
    )
    logo_url: str | None = Field(default=None, alias="logoUrl", pattern=URL_PATTERN)


class CompanyUpdate(PatchModel):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"name", "description"})

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    num_employees: int | None = Field(
        default=None, alias="numEmployees", ge=0, le=SQLITE_MAX_INT
    )
    logo_url: str | None = Field(default=None, alias="logoUrl", pattern=URL_PATTERN)


class CompanyFilter(ApiModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str | None = None
    min_employees: int | None = Field(
        default=None, alias="minEmployees", ge=0, le=SQLITE_MAX_INT
    )
    max_employees: int | None = Field(
        default=None, alias="maxEmployees", ge=0, le=SQLITE_MAX_INT
    )


class Company(ApiModel):
    handle: str
    name: str
    description: str
    num_employees: int | None = Field(default=None, alias="numEmployees")
    logo_url: str | None = Field(default=None, alias="logoUrl")


class JobNew(RequestModel):
    title: str = Field(..., min_length=1)
    salary: int | None = Field(default=None, ge=0, le=SQLITE_MAX_INT)
    equity: float | None = Field(default=None, ge=0, le=1)
    company_handle: str = Field(..., min_length=1, max_length=25)


class JobUpdate(PatchModel):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"title"})

    title: str | None = Field(default=None, min_length=1)
    salary: int | None = Field(default=None, ge=0, le=SQLITE_MAX_INT)
    equity: float | None = Field(default=None, ge=0, le=1)


class JobFilter(ApiModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str | None = None
    min_salary: int | None = Field(
        default=None, alias="minSalary", ge=SQLITE_MIN_INT, le=SQLITE_MAX_INT
    )
    has_equity: bool = Field(default=False, alias="hasEquity")
    company_handle: str | None = Field(default=None, alias="companyHandle")


class Job(ApiModel):
    id: int
    title: str
    salary: int | None = None
    equity: str | None = None
    company_handle: str


class UserRegister(RequestModel):
    username: str = Field(..., min_length=1, max_length=30)
    password: str = Field(..., min_length=5, max_length=20)
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=30)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=30)
    email: EmailStr

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str | None) -> str | None:
        return check_password_bytes(value)


class UserNew(UserRegister):
    is_admin: bool = Field(default=False, alias="isAdmin")


class UserAuth(RequestModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str | None) -> str | None:
        return check_password_bytes(value)


class UserUpdate(PatchModel):
    non_nullable: ClassVar[frozenset[str]] = frozenset(
        {"password", "first_name", "last_name", "email", "is_admin"}
    )

    password: str | None = Field(default=None, min_length=5, max_length=20)
    first_name: str | None = Field(default=None, alias="firstName", min_length=1, max_length=30)
    last_name: str | None = Field(default=None, alias="lastName", min_length=1, max_length=30)
    email: EmailStr | None = None
    is_admin: bool | None = Field(default=None, alias="isAdmin")

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str | None) -> str | None:
        return check_password_bytes(value)


class User(ApiModel):
    username: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: str
    is_admin: bool = Field(..., alias="isAdmin")


class UserDetail(User):
    jobs: list[int] = Field(default_factory=list)


class Application(ApiModel):
    username: str
    job_id: int


class TokenResponse(BaseModel):
    token: str


class CompanyResponse(BaseModel):
    company: Company


class CompanyListResponse(BaseModel):
    companies: list[Company]


class JobResponse(BaseModel):
    job: Job


class JobListResponse(BaseModel):
    jobs: list[Job]


class UserResponse(BaseModel):
    user: User


class UserDetailResponse(BaseModel):
    user: UserDetail


class UserTokenResponse(BaseModel):
    user: User
    token: str


class UserListResponse(BaseModel):
    users: list[User]


class DeletedResponse(BaseModel):
    deleted: str


class AppliedResponse(BaseModel):
    applied: int
