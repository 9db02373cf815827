"""Exceptions raised by Freight Learning."""


class FreightLearningError(Exception):
    """Base exception for the learning subsystem."""


class PersistenceError(FreightLearningError):
    """A backing store operation failed."""

    def __init__(self, operation: str, table: str, message: str):
        self.operation = operation
        self.table = table
        super().__init__(f"{operation} on {table} failed: {message}")


class UnknownTableError(FreightLearningError):
    """A logical table name is not registered with the store."""


class NotificationNotFoundError(FreightLearningError):
    """A learning notification id does not exist."""
