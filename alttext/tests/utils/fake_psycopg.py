"""
Lightweight psycopg stand-in for unit tests.

Provides ``install_fake_psycopg`` which monkeypatches a target module so that
``psycopg.connect`` returns a scripted connection. Statements are recorded so
tests can assert on SQL shape and parameters; results and errors are queued
per call to ``execute``.
"""
from __future__ import annotations

import types
from typing import Any, List, Optional


class FakeDB:
    def __init__(self) -> None:
        self.statements: List[tuple[str, tuple]] = []
        self.connect_kwargs: List[dict] = []
        self._results: List[Any] = []

    def queue(self, result: Any) -> None:
        """Queue the next execute's result: a row, a list of rows, None, or an exception."""
        self._results.append(result)

    def _next(self) -> Any:
        return self._results.pop(0) if self._results else None


class _FakeCursor:
    def __init__(self, db: FakeDB) -> None:
        self._db = db
        self._result: Any = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql: Any, params: tuple | list = ()) -> None:
        self._db.statements.append((str(sql), tuple(params)))
        result = self._db._next()
        if isinstance(result, BaseException):
            raise result
        self._result = result

    def fetchone(self) -> Optional[Any]:
        if isinstance(self._result, list):
            return self._result[0] if self._result else None
        return self._result

    def fetchall(self) -> list:
        if self._result is None:
            return []
        return self._result if isinstance(self._result, list) else [self._result]


class _FakeConnection:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def cursor(self) -> _FakeCursor:
        return _FakeCursor(self._db)


def install_fake_psycopg(monkeypatch, module) -> FakeDB:
    db = FakeDB()

    def _connect(dsn: str, **kwargs: Any) -> _FakeConnection:
        db.connect_kwargs.append({"dsn": dsn, **kwargs})
        return _FakeConnection(db)

    monkeypatch.setattr(module, "psycopg", types.SimpleNamespace(connect=_connect))
    return db
