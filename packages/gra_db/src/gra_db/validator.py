import dataclasses
from functools import cache
from typing import Any, Type, TypeVar

from gra_core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@cache
def _warn_missing_identifier(entity_type: type) -> None:
    from .schema import identifier

    if identifier(entity_type) is None:
        logger.warning(
            "Entity %s has no persisted identifier field. "
            "update() and delete() will fail for it.",
            entity_type.__name__,
        )


class EntityValidator:
    """Validates that a class can be mapped by the schema reflector."""

    @staticmethod
    def validate_entity(entity_type: Type[T]) -> Type[T]:
        """
        Validate that the provided class is a dataclass entity.

        Raises:
            TypeError: If entity_type is not a class or not a dataclass.
        """
        if not isinstance(entity_type, type):
            raise TypeError(
                f"entity type must be a class, got {type(entity_type).__name__}"
            )

        if not dataclasses.is_dataclass(entity_type):
            raise TypeError(
                f"entity type must be a dataclass, got {entity_type.__name__}. "
                f"Decorate '{entity_type.__name__}' with @dataclass."
            )

        _warn_missing_identifier(entity_type)
        return entity_type

    @classmethod
    def validate_instance(cls, entity: Any) -> Any:
        """Validate the type of an entity instance and return the instance."""
        if isinstance(entity, type):
            raise TypeError(
                f"expected an entity instance, got the class {entity.__name__}"
            )
        cls.validate_entity(type(entity))
        return entity
