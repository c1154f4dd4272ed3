import abc
import typing
from contextlib import contextmanager

import attr

from entity_mapper import types
from entity_mapper.connection import Connection, PreparedStatement, Row
from entity_mapper.descriptors import ColumnDescriptor, TypeDescriptor
from entity_mapper.errors import EntityNotFoundError, PersistenceError, StatementError


@contextmanager
def statement_errors(sql: str, message: str = "Unable to execute statement") -> typing.Iterator[None]:
    try:
        yield
    except PersistenceError:
        raise
    except Exception as exc:
        raise StatementError(f"{message}: {sql}", sql=sql) from exc


def bind_columns(
    statement: PreparedStatement, columns: typing.Sequence[ColumnDescriptor], entity: typing.Any, start: int = 1
) -> int:
    position = start
    for column in columns:
        statement.set_object(position, types.to_storage(column.reader(entity)), column.sql_type)
        position += 1
    return position


def read_column(row: Row, column: ColumnDescriptor) -> typing.Any:
    return types.from_storage(row.get_object(column.name, column.sql_type), column.value_type)


class Execution(abc.ABC):
    sql: str

    @classmethod
    @abc.abstractmethod
    def from_descriptor(cls, descriptor: TypeDescriptor) -> "Execution":
        pass

    @abc.abstractmethod
    def execute(self, connection: Connection, argument: typing.Any) -> typing.Any:
        pass


@attr.s(auto_attribs=True, frozen=True)
class InsertExecution(Execution):
    SQL_FORMAT: typing.ClassVar[str] = "INSERT INTO {table} ({columns}) VALUES ({placeholders})"

    sql: str
    columns: typing.Tuple[ColumnDescriptor, ...]
    id_column: ColumnDescriptor
    generated_id: bool

    @classmethod
    def from_descriptor(cls, descriptor: TypeDescriptor) -> "InsertExecution":
        columns = list(descriptor.columns)
        generated_id = descriptor.identity.is_generated
        if not generated_id:
            columns.append(descriptor.id_column)

        sql = cls.SQL_FORMAT.format(
            table=descriptor.qualified_table_name,
            columns=",".join(column.name for column in columns),
            placeholders=",".join("?" for _ in columns),
        )
        return cls(sql, tuple(columns), descriptor.id_column, generated_id)

    def execute(self, connection: Connection, entity: typing.Any) -> int:
        with statement_errors(self.sql):
            with connection.prepare_statement(self.sql, return_generated_keys=self.generated_id) as statement:
                bind_columns(statement, self.columns, entity)
                result = statement.execute_update()
                if self.generated_id:
                    keys = statement.generated_keys()
                    if keys:
                        self.id_column.writer(entity, types.from_storage(keys[0], self.id_column.value_type))
                return result


@attr.s(auto_attribs=True, frozen=True)
class UpdateExecution(Execution):
    SQL_FORMAT: typing.ClassVar[str] = "UPDATE {table} SET {assignments} WHERE {id_column}=?"

    sql: str
    columns: typing.Tuple[ColumnDescriptor, ...]
    id_column: ColumnDescriptor

    @classmethod
    def from_descriptor(cls, descriptor: TypeDescriptor) -> "UpdateExecution":
        sql = cls.SQL_FORMAT.format(
            table=descriptor.qualified_table_name,
            assignments=",".join(f"{column.name}=?" for column in descriptor.columns),
            id_column=descriptor.id_column.name,
        )
        return cls(sql, descriptor.columns, descriptor.id_column)

    def execute(self, connection: Connection, entity: typing.Any) -> int:
        with statement_errors(self.sql):
            with connection.prepare_statement(self.sql) as statement:
                position = bind_columns(statement, self.columns, entity)
                bind_columns(statement, [self.id_column], entity, start=position)
                return statement.execute_update()


@attr.s(auto_attribs=True, frozen=True)
class DeleteExecution(Execution):
    SQL_FORMAT: typing.ClassVar[str] = "DELETE FROM {table} WHERE {id_column}=?"

    sql: str
    id_column: ColumnDescriptor

    @classmethod
    def from_descriptor(cls, descriptor: TypeDescriptor) -> "DeleteExecution":
        sql = cls.SQL_FORMAT.format(table=descriptor.qualified_table_name, id_column=descriptor.id_column.name)
        return cls(sql, descriptor.id_column)

    def execute(self, connection: Connection, entity: typing.Any) -> int:
        with statement_errors(self.sql):
            with connection.prepare_statement(self.sql) as statement:
                bind_columns(statement, [self.id_column], entity)
                return statement.execute_update()


@attr.s(auto_attribs=True, frozen=True)
class SelectExecution(Execution):
    """Selects a single row by primary key into a fresh instance, None when there is no such row."""

    SQL_FORMAT: typing.ClassVar[str] = "SELECT {columns} FROM {table} WHERE {id_column}=?"

    sql: str
    descriptor: TypeDescriptor
    columns: typing.Tuple[ColumnDescriptor, ...]

    @classmethod
    def from_descriptor(cls, descriptor: TypeDescriptor) -> "SelectExecution":
        columns = (descriptor.id_column,) + descriptor.columns
        sql = cls.SQL_FORMAT.format(
            columns=",".join(column.name for column in columns),
            table=descriptor.qualified_table_name,
            id_column=descriptor.id_column.name,
        )
        return cls(sql, descriptor, columns)

    def execute(self, connection: Connection, primary_key: typing.Any) -> typing.Any:
        id_column = self.descriptor.id_column
        with statement_errors(self.sql):
            with connection.prepare_statement(self.sql) as statement:
                statement.set_object(1, types.to_storage(primary_key), id_column.sql_type)
                with statement.execute_query() as cursor:
                    row = next(iter(cursor), None)
                    if row is None:
                        return None
                    entity = self.descriptor.factory()
                    for column in self.columns:
                        column.writer(entity, read_column(row, column))
                    return entity


@attr.s(auto_attribs=True, frozen=True)
class RefreshExecution(Execution):
    select: SelectExecution

    @property
    def sql(self) -> str:
        return self.select.sql

    @classmethod
    def from_descriptor(cls, descriptor: TypeDescriptor) -> "RefreshExecution":
        return cls(SelectExecution.from_descriptor(descriptor))

    def execute(self, connection: Connection, entity: typing.Any) -> None:
        primary_key = self.select.descriptor.primary_key(entity)
        fresh = self.select.execute(connection, primary_key)
        if fresh is None:
            raise EntityNotFoundError(f"Row of {entity!r} no longer exists", sql=self.sql, key=primary_key)
        for column in self.select.columns:
            column.writer(entity, column.reader(fresh))
