import enum
import typing


class ErrorKind(enum.Enum):
    CONFIGURATION = "configuration"
    EXECUTION = "execution"
    SESSION_STATE = "session_state"
    UNSUPPORTED = "unsupported"


class PersistenceError(Exception):
    """Base of every error raised by entity_mapper.

    Callers may branch either on the class or on ``kind``. ``sql`` holds the offending statement and ``key``
    the offending primary key, when there is one.
    """

    kind: ErrorKind = ErrorKind.EXECUTION

    def __init__(self, message: str = "", *, sql: typing.Optional[str] = None, key: typing.Any = None) -> None:
        super().__init__(message)
        self.sql = sql
        self.key = key


class MappingError(PersistenceError, TypeError):
    kind = ErrorKind.CONFIGURATION


class StatementError(PersistenceError):
    kind = ErrorKind.EXECUTION


class InvalidQueryError(PersistenceError, ValueError):
    kind = ErrorKind.EXECUTION


class NonUniqueResultError(PersistenceError):
    kind = ErrorKind.EXECUTION


class SessionStateError(PersistenceError):
    kind = ErrorKind.SESSION_STATE


class EntityExistsError(SessionStateError):
    pass


class EntityNotFoundError(SessionStateError):
    pass


class SessionClosedError(SessionStateError):
    pass


class TransactionRequiredError(SessionStateError):
    pass


class RollbackOnlyError(SessionStateError):
    pass


class UnsupportedOperationError(PersistenceError, NotImplementedError):
    kind = ErrorKind.UNSUPPORTED
