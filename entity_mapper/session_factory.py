import typing

from sqlalchemy.engine import Engine

from entity_mapper.errors import PersistenceError, SessionClosedError, UnsupportedOperationError
from entity_mapper.registry import Registry
from entity_mapper.session import Session
from entity_mapper.storages.sqlalchemy import connect, create_engine_from_properties


class SessionFactory:
    """Registry of mapped classes plus the engine sessions draw their connections from.

    Every class is registered up front, so a broken mapping fails here rather than in the first session.
    """

    def __init__(
        self,
        engine: Engine,
        entity_types: typing.Iterable[typing.Type] = (),
        properties: typing.Optional[typing.Mapping[str, str]] = None,
    ) -> None:
        self._engine = engine
        self._properties = dict(properties or {})
        self._registry = Registry()
        for entity_type in entity_types:
            self._registry.register(entity_type)
        self._open = True

    @classmethod
    def from_properties(
        cls, properties: typing.Mapping[str, str], entity_types: typing.Iterable[typing.Type] = ()
    ) -> "SessionFactory":
        return cls(create_engine_from_properties(properties), entity_types, properties)

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def properties(self) -> typing.Dict[str, str]:
        return dict(self._properties)

    @property
    def is_open(self) -> bool:
        return self._open

    def create_session(self) -> Session:
        if not self._open:
            raise SessionClosedError("Session factory is closed!")
        try:
            connection = connect(self._engine)
        except Exception as exc:
            raise PersistenceError(f"Unable to open connection: {exc}") from exc
        return Session(connection, self._registry, self)

    def generate_schema(self) -> typing.NoReturn:
        raise UnsupportedOperationError("Schema generation is not supported!")

    def close(self) -> None:
        self._open = False
        self._engine.dispose()

    def __enter__(self) -> "SessionFactory":
        return self

    def __exit__(self, *exc_info: typing.Any) -> None:
        self.close()
