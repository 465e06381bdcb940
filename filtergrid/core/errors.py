"""Exceptions raised by the filtering engine"""


class FilterGridError(Exception):
    """Base class for all filtergrid errors"""


class SchemaMismatchError(FilterGridError):
    """A column's binding key does not exist in the row schema"""

    def __init__(self, column_key: str, binding_key: str):
        self.column_key = column_key
        self.binding_key = binding_key
        super().__init__(
            f"Column '{column_key}' is bound to '{binding_key}', which is not a field of the loaded rows"
        )


class InvalidRangeError(FilterGridError, ValueError):
    """Range filter with a lower bound greater than its upper bound"""

    def __init__(self, lower, upper):
        self.lower = lower
        self.upper = upper
        super().__init__(f"Invalid range: {lower!r} is greater than {upper!r}")


class ConcurrentLoadAbortedError(FilterGridError):
    """A bulk load was superseded by a newer load before it finished indexing"""

    def __init__(self, generation: int, superseded_by: int = None):
        self.generation = generation
        self.superseded_by = superseded_by
        message = f"Load for generation {generation} was aborted"
        if superseded_by is not None:
            message += f" (superseded by generation {superseded_by})"
        super().__init__(message)


class UnknownColumnError(FilterGridError, KeyError):
    """A query referenced a column that has no usable index or field"""

    def __init__(self, column_key: str):
        self.column_key = column_key
        super().__init__(column_key)

    def __str__(self):
        return f"Unknown or unindexed column: '{self.column_key}'"
