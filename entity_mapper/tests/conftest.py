import typing

import attr
import pytest
from _pytest.config.argparsing import Parser

from entity_mapper import Registry, Session
from entity_mapper.connection import Connection, PreparedStatement, ResultCursor, Row
from entity_mapper.types import SqlType


def pytest_addoption(parser: Parser) -> None:
    parser.addoption("--sqlalchemy-url", action="store", default=None)


class FakeRow(Row):
    def __init__(self, values: typing.Dict[str, typing.Any]) -> None:
        self.values = {key.lower(): value for key, value in values.items()}

    def get_object(self, column: str, sql_type: typing.Optional[SqlType] = None) -> typing.Any:
        return self.values[column.lower()]


class FakeCursor(ResultCursor):
    def __init__(self, rows: typing.List[typing.Dict[str, typing.Any]]) -> None:
        self.rows = rows
        self.closed = False

    def keys(self) -> typing.List[str]:
        return list(self.rows[0]) if self.rows else []

    def __iter__(self) -> typing.Iterator[Row]:
        return (FakeRow(row) for row in self.rows)

    def close(self) -> None:
        self.closed = True


@attr.s(auto_attribs=True)
class FakeStatement(PreparedStatement):
    connection: "FakeConnection"
    sql: str
    return_generated_keys: bool = False
    parameters: typing.Dict[int, typing.Tuple[typing.Any, SqlType]] = attr.Factory(dict)
    keys: typing.List[typing.Any] = attr.Factory(list)
    closed: bool = False

    def set_object(self, position: int, value: typing.Any, sql_type: SqlType) -> None:
        self.parameters[position] = (value, sql_type)

    def execute_update(self) -> int:
        self.connection.check(self.sql)
        self.connection.executed.append((self.sql, self.values()))
        if self.return_generated_keys and self.connection.generated_keys:
            self.keys = [self.connection.generated_keys.pop(0)]
        return self.connection.row_count

    def execute_query(self) -> ResultCursor:
        self.connection.check(self.sql)
        self.connection.executed.append((self.sql, self.values()))
        cursor = FakeCursor(self.connection.results.get(self.sql, []))
        self.connection.cursors.append(cursor)
        return cursor

    def generated_keys(self) -> typing.List[typing.Any]:
        return list(self.keys)

    def close(self) -> None:
        self.closed = True

    def values(self) -> typing.List[typing.Any]:
        return [self.parameters[position][0] for position in sorted(self.parameters)]


class FakeConnection(Connection):
    """Records every statement it runs; queries answer with the rows registered for their exact SQL."""

    def __init__(self) -> None:
        self.statements: typing.List[FakeStatement] = []
        self.executed: typing.List[typing.Tuple[str, typing.List[typing.Any]]] = []
        self.cursors: typing.List[FakeCursor] = []
        self.results: typing.Dict[str, typing.List[typing.Dict[str, typing.Any]]] = {}
        self.generated_keys: typing.List[typing.Any] = []
        self.failing: typing.Set[str] = set()
        self.row_count = 1
        self.autocommit_calls: typing.List[bool] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self._autocommit = False

    def check(self, sql: str) -> None:
        if sql in self.failing:
            raise RuntimeError(f"boom: {sql}")

    def prepare_statement(self, sql: str, return_generated_keys: bool = False) -> FakeStatement:
        statement = FakeStatement(self, sql, return_generated_keys)
        self.statements.append(statement)
        return statement

    @property
    def autocommit(self) -> bool:
        return self._autocommit

    def set_autocommit(self, autocommit: bool) -> None:
        self.autocommit_calls.append(autocommit)
        self._autocommit = autocommit

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True

    @property
    def executed_sql(self) -> typing.List[str]:
        return [sql for sql, _ in self.executed]


@pytest.fixture()
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture()
def entities() -> typing.List[typing.Type]:
    return []


@pytest.fixture()
def registry(entities: typing.List[typing.Type]) -> Registry:
    registry = Registry()
    for entity_cls in entities:
        registry.register(entity_cls)
    return registry


@pytest.fixture()
def session(connection: FakeConnection, registry: Registry) -> Session:
    return Session(connection, registry)
