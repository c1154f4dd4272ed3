import enum
import typing
from collections import deque

import attr
import structlog

from entity_mapper.connection import Connection
from entity_mapper.descriptors import TypeDescriptor
from entity_mapper.errors import (
    EntityExistsError,
    EntityNotFoundError,
    PersistenceError,
    RollbackOnlyError,
    SessionClosedError,
    StatementError,
    TransactionRequiredError,
    UnsupportedOperationError,
)
from entity_mapper.executions import (
    DeleteExecution,
    Execution,
    InsertExecution,
    RefreshExecution,
    SelectExecution,
    UpdateExecution,
)
from entity_mapper.registry import Registry

if typing.TYPE_CHECKING:
    from entity_mapper.query import NativeQuery
    from entity_mapper.session_factory import SessionFactory

logger = structlog.get_logger()

T = typing.TypeVar("T")
IdentityKey = typing.Tuple[typing.Type, typing.Any]


class FlushMode(enum.Enum):
    AUTO = "AUTO"
    COMMIT = "COMMIT"


@attr.s(auto_attribs=True, frozen=True)
class PendingExecution:
    execution: Execution
    entity: typing.Any


class Transaction:
    """Local transaction over the session's connection.

    Can be used as a context manager: it begins on enter, commits when the block succeeds and rolls back when
    it raises.
    """

    def __init__(self, session: "Session") -> None:
        self._session = session
        self._active = False
        self._rollback_only = False

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def rollback_only(self) -> bool:
        return self._rollback_only

    def set_rollback_only(self) -> None:
        self._rollback_only = True

    def begin(self) -> None:
        connection = self._session.connection
        try:
            connection.set_autocommit(True)
        except Exception as exc:
            raise PersistenceError("Incorrect transaction action!") from exc
        self._active = True
        self._rollback_only = False
        logger.debug("transaction_begin")

    def commit(self) -> None:
        if not self._active:
            raise TransactionRequiredError("Transaction is not active!")
        if self._rollback_only:
            raise RollbackOnlyError("Transaction is marked as rollback only!")
        try:
            if self._session.flush_mode is FlushMode.COMMIT:
                self._session.flush()
            try:
                self._session.connection.commit()
            except Exception as exc:
                raise StatementError("Unable to commit transaction!") from exc
            logger.debug("transaction_commit")
        finally:
            self._finish()

    def rollback(self) -> None:
        if not self._active:
            raise TransactionRequiredError("Transaction is not active!")
        try:
            self._session.clear()
            try:
                self._session.connection.rollback()
            except Exception as exc:
                raise StatementError("Unable to rollback transaction!") from exc
            logger.debug("transaction_rollback")
        finally:
            self._finish()

    def _finish(self) -> None:
        self._active = False
        try:
            self._session.connection.set_autocommit(False)
        except Exception:
            # the outcome of commit or rollback has already been decided
            logger.exception("transaction_autocommit_restore_failed")

    def __enter__(self) -> "Transaction":
        self.begin()
        return self

    def __exit__(self, exc_type: typing.Any, exc_value: typing.Any, traceback: typing.Any) -> None:
        if not self._active:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


class Session:
    """Unit of work over a single connection.

    Mutations are queued and executed in order on flush. Under ``FlushMode.AUTO`` every mutating call flushes
    right away, under ``FlushMode.COMMIT`` nothing runs until ``flush`` or a transaction commit. Reads through
    ``find`` and native queries go to the connection immediately. Not safe for use from several threads.
    """

    def __init__(
        self, connection: Connection, registry: Registry, factory: typing.Optional["SessionFactory"] = None
    ) -> None:
        self._connection = connection
        self._registry = registry
        self._factory = factory
        self._identity_map: typing.Dict[IdentityKey, typing.Any] = {}
        self._pending: typing.Deque[PendingExecution] = deque()
        self._flush_mode = FlushMode.AUTO
        self._open = True
        self._transaction = Transaction(self)

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def factory(self) -> typing.Optional["SessionFactory"]:
        return self._factory

    @property
    def flush_mode(self) -> FlushMode:
        return self._flush_mode

    @flush_mode.setter
    def flush_mode(self, flush_mode: FlushMode) -> None:
        self._flush_mode = flush_mode

    @property
    def transaction(self) -> Transaction:
        self._check_open()
        return self._transaction

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def pending(self) -> typing.List[PendingExecution]:
        return list(self._pending)

    def persist(self, entity: typing.Any) -> None:
        self._check_open()
        descriptor, key = self._describe(entity)
        if key[1] is not None:
            if key in self._identity_map:
                raise EntityExistsError("Entity already exists in persistence context!", key=key[1])
            self._identity_map[key] = entity
        self._enqueue(InsertExecution.from_descriptor(descriptor), entity)

    def merge(self, entity: T) -> typing.Optional[T]:
        """Queue an insert for an unmanaged entity or an update for a managed one.

        ``entity`` becomes the managed instance; the instance it replaced, if any, is returned.
        """
        self._check_open()
        descriptor, key = self._describe(entity)
        previous = None
        if key[1] is not None:
            previous = self._identity_map.get(key)
            self._identity_map[key] = entity
        if previous is None:
            self._enqueue(InsertExecution.from_descriptor(descriptor), entity)
        else:
            self._enqueue(UpdateExecution.from_descriptor(descriptor), entity)
        return previous

    def remove(self, entity: typing.Any) -> None:
        self._check_open()
        descriptor, key = self._describe(entity)
        self._identity_map.pop(key, None)
        self._enqueue(DeleteExecution.from_descriptor(descriptor), entity)

    def refresh(self, entity: typing.Any) -> None:
        self._check_open()
        descriptor, key = self._describe(entity)
        if key[1] is None or key not in self._identity_map:
            raise EntityNotFoundError(f"Entity {entity!r} is not found in persistence context!", key=key[1])
        self._enqueue(RefreshExecution.from_descriptor(descriptor), entity)

    def find(
        self, entity_cls: typing.Type[T], primary_key: typing.Any, lock_mode: typing.Optional[str] = None
    ) -> typing.Optional[T]:
        self._check_open()
        if lock_mode is not None:
            raise UnsupportedOperationError("Locking is not supported!")
        key = (entity_cls, primary_key)
        if key in self._identity_map:
            return self._identity_map[key]

        descriptor = self._registry.get(entity_cls)
        entity = SelectExecution.from_descriptor(descriptor).execute(self._connection, primary_key)
        if entity is not None:
            self._identity_map[key] = entity
        return entity

    def contains(self, entity: typing.Any) -> bool:
        self._check_open()
        _, key = self._describe(entity)
        return key in self._identity_map

    def __contains__(self, entity: typing.Any) -> bool:
        return self.contains(entity)

    def detach(self, entity: typing.Any) -> None:
        self._check_open()
        _, key = self._describe(entity)
        self._identity_map.pop(key, None)

    def flush(self) -> None:
        """Run every queued execution in the order it was queued, then forget all managed entities.

        An execution leaves the queue before it runs. When one fails, the error propagates, the executions queued
        after it stay queued and managed entities are kept.
        """
        self._check_open()
        if self._pending:
            logger.debug("flushing_session", pending=len(self._pending))
        while self._pending:
            entry = self._pending.popleft()
            entry.execution.execute(self._connection, entry.entity)
        self._identity_map.clear()

    def clear(self) -> None:
        self._identity_map.clear()
        self._pending.clear()

    def create_native_query(self, sql: str, result_type: typing.Optional[typing.Type[T]] = None) -> "NativeQuery[T]":
        from entity_mapper.query import NativeQuery

        self._check_open()
        descriptor = self._registry.get(result_type) if result_type is not None else None
        return NativeQuery(self._connection, sql, descriptor, self._flush_mode)

    def create_query(self, ql: str, result_type: typing.Optional[typing.Type] = None) -> typing.NoReturn:
        raise UnsupportedOperationError("Query language is not supported, use create_native_query!")

    def create_named_query(self, name: str, result_type: typing.Optional[typing.Type] = None) -> typing.NoReturn:
        raise UnsupportedOperationError("Named queries are not supported!")

    def lock(self, entity: typing.Any, lock_mode: str) -> typing.NoReturn:
        raise UnsupportedOperationError("Locking is not supported!")

    def join_transaction(self) -> typing.NoReturn:
        raise UnsupportedOperationError("Distributed transactions are not supported!")

    def close(self) -> None:
        """Flush queued work and close the connection; the connection is closed even when the flush fails."""
        try:
            self.flush()
        finally:
            try:
                self._connection.close()
            except Exception as exc:
                raise PersistenceError(f"Unable to close connection: {exc}") from exc
            finally:
                self._open = False

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type: typing.Any, exc_value: typing.Any, traceback: typing.Any) -> None:
        if not self._open:
            return
        if exc_type is not None:
            self.clear()
        self.close()

    def _describe(self, entity: typing.Any) -> typing.Tuple[TypeDescriptor, IdentityKey]:
        descriptor = self._registry.get(type(entity))
        return descriptor, (descriptor.entity, descriptor.primary_key(entity))

    def _enqueue(self, execution: Execution, entity: typing.Any) -> None:
        self._pending.append(PendingExecution(execution, entity))
        if self._flush_mode is FlushMode.AUTO:
            self.flush()

    def _check_open(self) -> None:
        if not self._open:
            raise SessionClosedError("Session is closed!")
