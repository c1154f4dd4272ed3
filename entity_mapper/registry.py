import threading
from typing import Dict, List, Type

import attr
import structlog

from entity_mapper.descriptors import TypeDescriptor
from entity_mapper.errors import MappingError
from entity_mapper.extraction import extract

logger = structlog.get_logger()


@attr.s(auto_attribs=True)
class Registry:
    """Descriptors of every mapped class, shared by all sessions of one factory."""

    entities_to_descriptors: Dict[Type, TypeDescriptor] = attr.Factory(dict)
    _lock: threading.RLock = attr.ib(factory=threading.RLock, init=False, repr=False, eq=False)

    def register(self, entity_cls: Type) -> TypeDescriptor:
        with self._lock:
            if entity_cls in self.entities_to_descriptors:
                return self.entities_to_descriptors[entity_cls]
            descriptor = extract(entity_cls)
            if descriptor is None:
                raise MappingError(f"Provided class {entity_cls} is not marked as entity!")
            self.entities_to_descriptors[entity_cls] = descriptor

        logger.info("entity_registered", entity=entity_cls.__name__, table=descriptor.qualified_table_name)
        return descriptor

    def get(self, entity_cls: Type) -> TypeDescriptor:
        with self._lock:
            try:
                return self.entities_to_descriptors[entity_cls]
            except KeyError:
                raise MappingError(f"Metadata for class {entity_cls} is not found!") from None

    def __contains__(self, entity_cls: Type) -> bool:
        with self._lock:
            return entity_cls in self.entities_to_descriptors

    def entities(self) -> List[Type]:
        with self._lock:
            return list(self.entities_to_descriptors)

    def descriptors(self) -> List[TypeDescriptor]:
        with self._lock:
            return list(self.entities_to_descriptors.values())
