import typing

from entity_mapper.errors import EntityNotFoundError, MappingError
from entity_mapper.session import Session


EntityType = typing.TypeVar("EntityType")
IdentityType = typing.TypeVar("IdentityType")


class ReadOnlyRepository(typing.Generic[EntityType, IdentityType]):
    """Typed access to one entity class through a session.

    The entity class comes from the generic arguments of the subclass::

        class CarRepository(Repository[Car, int]):
            pass
    """

    entity_cls: typing.ClassVar[typing.Type]

    def __init_subclass__(cls, **kwargs: typing.Any) -> None:
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", ()):
            origin = typing.get_origin(base)
            if isinstance(origin, type) and issubclass(origin, ReadOnlyRepository):
                entity_cls, _identity_cls = typing.get_args(base)
                if not isinstance(entity_cls, typing.TypeVar):
                    cls.entity_cls = entity_cls
                break

    def __init__(self, session: Session) -> None:
        if getattr(self, "entity_cls", None) is None:
            raise MappingError(f"{type(self).__name__} does not name its entity class")
        session.registry.register(self.entity_cls)
        self.session = session

    def get(self, identity: IdentityType) -> EntityType:
        entity = self.session.find(self.entity_cls, identity)
        if entity is None:
            raise EntityNotFoundError(f"{self.entity_cls.__name__} with identity {identity!r} not found", key=identity)
        return entity


class Repository(ReadOnlyRepository[EntityType, IdentityType]):
    def save(self, entity: EntityType) -> None:
        self.session.merge(entity)

    def remove(self, entity: EntityType) -> None:
        self.session.remove(entity)
