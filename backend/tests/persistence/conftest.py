"""Fake SQLAlchemy session for repository and sink tests.

Statements are captured instead of executed so tests can assert on the SQL
each operation would send to PostgreSQL.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from sqlalchemy.dialects import postgresql


class FakeResult:
    def __init__(self, rows: list[Any]) -> None:
        self._rows = rows

    def __iter__(self):
        return iter(self._rows)

    def scalar_one_or_none(self) -> Any:
        return self._rows[0] if self._rows else None


class _Transaction:
    def __init__(self, session: "FakeSession") -> None:
        self._session = session

    async def __aenter__(self) -> None:
        self._session.transactions += 1

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


class FakeSession:
    def __init__(self) -> None:
        self.statements: list[Any] = []
        self.results: list[list[Any]] = []
        self.transactions = 0
        self.closed = 0

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        self.closed += 1
        return False

    def begin(self) -> _Transaction:
        return _Transaction(self)

    async def execute(self, statement: Any) -> FakeResult:
        self.statements.append(statement)
        return FakeResult(self.results.pop(0) if self.results else [])

    def sql(self, index: int = -1) -> str:
        """Render a captured statement for PostgreSQL."""
        return str(self.statements[index].compile(dialect=postgresql.dialect()))


def row(**fields: Any) -> SimpleNamespace:
    return SimpleNamespace(**fields)


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def session_factory(session: FakeSession):
    return lambda: session
