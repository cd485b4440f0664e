"""Builders for the dynamic parts of Jobly's SQL.

Every value supplied by a caller is bound through a numbered SQLite
parameter (``?1``, ``?2``, ...); only column names from fixed translation
tables and literal predicates are ever written into the statement text.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from jobly.errors import BadRequestError
from jobly.schemas import CompanyFilter, JobFilter


@dataclass(frozen=True)
class SqlFragment:
    clauses: tuple[str, ...]
    values: tuple[Any, ...]

    @property
    def set_cols(self) -> str:
        return ", ".join(self.clauses)

    @property
    def where(self) -> str:
        if not self.clauses:
            return ""
        return " WHERE " + " AND ".join(self.clauses)

    @property
    def next_placeholder(self) -> str:
        return f"?{len(self.values) + 1}"


def sql_for_partial_update(
    data: Mapping[str, Any],
    js_to_sql: Mapping[str, str],
) -> SqlFragment:
    """Build the SET assignments for a partial update.

    ``data`` holds only the fields being changed, keyed by their API names;
    ``js_to_sql`` renames the ones whose column differs, e.g.
    ``{"firstName": "first_name"}``. The returned clauses are in ``data``'s
    order, e.g. ``('"first_name"=?1', '"age"=?2')``, and the row key goes in
    ``fragment.next_placeholder``.
    """
    keys = list(data)
    if not keys:
        raise BadRequestError("No data")

    clauses = tuple(
        f'"{js_to_sql.get(name, name)}"=?{index}' for index, name in enumerate(keys, start=1)
    )
    return SqlFragment(clauses=clauses, values=tuple(data[name] for name in keys))


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class WhereBuilder:
    """Accumulates AND-ed predicates and their bound values."""

    def __init__(self) -> None:
        self._clauses: list[str] = []
        self._values: list[Any] = []

    def add(self, predicate: str, *values: Any) -> WhereBuilder:
        # each "{}" in the predicate is filled with the next numbered placeholder
        start = len(self._values) + 1
        placeholders = [f"?{start + offset}" for offset in range(len(values))]
        self._clauses.append(predicate.format(*placeholders))
        self._values.extend(values)
        return self

    def add_substring(self, column: str, text: str) -> WhereBuilder:
        return self.add(
            f"LOWER({column}) LIKE LOWER({{}}) ESCAPE '\\'",
            f"%{escape_like(text)}%",
        )

    def build(self) -> SqlFragment:
        return SqlFragment(clauses=tuple(self._clauses), values=tuple(self._values))


def sql_for_job_filter(filters: JobFilter | None) -> SqlFragment:
    builder = WhereBuilder()
    if filters is None:
        return builder.build()

    if filters.title:
        builder.add_substring("title", filters.title)
    if filters.min_salary is not None:
        builder.add("salary >= {}", filters.min_salary)
    if filters.has_equity:
        builder.add("CAST(equity AS REAL) > 0")
    if filters.company_handle:
        builder.add("company_handle = {}", filters.company_handle)
    return builder.build()


def sql_for_company_filter(filters: CompanyFilter | None) -> SqlFragment:
    builder = WhereBuilder()
    if filters is None:
        return builder.build()

    min_employees = filters.min_employees
    max_employees = filters.max_employees
    if min_employees is not None and max_employees is not None and min_employees > max_employees:
        raise BadRequestError("Min employees cannot be greater than max")

    if filters.name:
        builder.add_substring("name", filters.name)
    if min_employees is not None:
        builder.add("num_employees >= {}", min_employees)
    if max_employees is not None:
        builder.add("num_employees <= {}", max_employees)
    return builder.build()
