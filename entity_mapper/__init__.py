from entity_mapper.descriptors import GenerationType
from entity_mapper.entity import Column, Entity, GeneratedValue, Identity, column, generated_value
from entity_mapper.errors import (
    EntityExistsError,
    EntityNotFoundError,
    ErrorKind,
    InvalidQueryError,
    MappingError,
    NonUniqueResultError,
    PersistenceError,
    RollbackOnlyError,
    SessionClosedError,
    StatementError,
    TransactionRequiredError,
    UnsupportedOperationError,
)
from entity_mapper.query import NativeQuery
from entity_mapper.registry import Registry
from entity_mapper.repository import ReadOnlyRepository, Repository
from entity_mapper.session import FlushMode, Session, Transaction
from entity_mapper.session_factory import SessionFactory
from entity_mapper.types import SqlType, TemporalType

__all__ = [
    "Column",
    "Entity",
    "EntityExistsError",
    "EntityNotFoundError",
    "ErrorKind",
    "FlushMode",
    "GeneratedValue",
    "GenerationType",
    "Identity",
    "InvalidQueryError",
    "MappingError",
    "NativeQuery",
    "NonUniqueResultError",
    "PersistenceError",
    "ReadOnlyRepository",
    "Registry",
    "Repository",
    "RollbackOnlyError",
    "Session",
    "SessionClosedError",
    "SessionFactory",
    "SqlType",
    "StatementError",
    "TemporalType",
    "TransactionRequiredError",
    "UnsupportedOperationError",
    "column",
    "generated_value",
]
