class GraDBError(Exception):
    """Base class for all gra_db exceptions."""


class DoesNotExistError(GraDBError, ValueError):
    """Raised when a single entity was expected but none was found."""


class MultipleObjectsReturnedError(GraDBError, ValueError):
    """Raised when a single entity was expected but several were found."""


class MissingIdentifierError(GraDBError):
    """Raised when an UPDATE or DELETE targets an entity without an identifier."""


class QueryError(GraDBError):
    """Raised when a SELECT issued by a QuerySet fails at the driver level."""


class SaveChangesError(GraDBError):
    """
    Raised when persisting a tracked entity fails.

    ``affected`` holds the number of entities persisted before the failure;
    those writes are not rolled back.
    """

    def __init__(self, message: str, *, affected: int = 0):
        super().__init__(message)
        self.affected = affected
