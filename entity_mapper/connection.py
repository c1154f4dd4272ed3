"""Relational connection the mapping core talks to.

The core only needs prepared statements with positional ``?`` parameters, a cursor of rows addressable by column
name and the transaction primitives. ``entity_mapper.storages.sqlalchemy`` implements it on top of SQLAlchemy.
"""
import abc
import typing

from entity_mapper.types import SqlType


class Row(abc.ABC):
    @abc.abstractmethod
    def get_object(self, column: str, sql_type: typing.Optional[SqlType] = None) -> typing.Any:
        """Value of ``column`` (case insensitive); raises KeyError when the result has no such column."""


class ResultCursor(abc.ABC):
    @abc.abstractmethod
    def keys(self) -> typing.List[str]:
        pass

    @abc.abstractmethod
    def __iter__(self) -> typing.Iterator[Row]:
        pass

    @abc.abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> "ResultCursor":
        return self

    def __exit__(self, *exc_info: typing.Any) -> None:
        self.close()


class PreparedStatement(abc.ABC):
    @abc.abstractmethod
    def set_object(self, position: int, value: typing.Any, sql_type: SqlType) -> None:
        """Bind ``value`` to the 1-based ``position``."""

    @abc.abstractmethod
    def execute_update(self) -> int:
        pass

    @abc.abstractmethod
    def execute_query(self) -> ResultCursor:
        pass

    @abc.abstractmethod
    def generated_keys(self) -> typing.List[typing.Any]:
        """Keys generated by the last ``execute_update``, when they were requested at prepare time."""

    @abc.abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> "PreparedStatement":
        return self

    def __exit__(self, *exc_info: typing.Any) -> None:
        self.close()


class Connection(abc.ABC):
    @abc.abstractmethod
    def prepare_statement(self, sql: str, return_generated_keys: bool = False) -> PreparedStatement:
        pass

    @property
    @abc.abstractmethod
    def autocommit(self) -> bool:
        pass

    @abc.abstractmethod
    def set_autocommit(self, autocommit: bool) -> None:
        pass

    @abc.abstractmethod
    def commit(self) -> None:
        pass

    @abc.abstractmethod
    def rollback(self) -> None:
        pass

    @abc.abstractmethod
    def close(self) -> None:
        pass
