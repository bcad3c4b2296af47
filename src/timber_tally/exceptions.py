"""
Exception hierarchy for timber_tally.

This module defines all public exceptions raised by the library.

Users are encouraged to catch `TimberTallyError` when they want to handle
all library-related failures, or more specific subclasses such as
`StoreError` when they need fine-grained control.
"""


class TimberTallyError(Exception):
    """
    Base exception for all timber_tally errors.

    Example
    -------
    >>> try:
    ...     store.write_counters(counters, "user-1")
    ... except TimberTallyError:
    ...     handle_failure()
    """

    #: Error code for programmatic handling.
    code: str = "timber_tally_error"

    def __init__(self, message: str | None = None) -> None:
        if message is None:
            message = "An unspecified timber_tally error occurred."
        super().__init__(message)


class StoreError(TimberTallyError):
    """
    Raised by a stock store when a read, write, reset or poll fails.

    This is a transient sync error. The reconciler catches it, reports it
    through its sync status and keeps the local counters untouched; the next
    debounce cycle tries again.

    Common causes
    -------------
    - The database is unreachable or the connection dropped
    - The stock table has not been created yet
    - The stored document could not be decoded
    """

    code: str = "store_error"


class InvalidStockKey(TimberTallyError, ValueError):
    """
    Raised when a stock key is empty or does not follow the
    ``treatment-size-length`` scheme.
    """

    code: str = "invalid_stock_key"


class UnknownCounterField(TimberTallyError, ValueError):
    """
    Raised when a counter field other than ``"runnable"`` or
    ``"non_runnable"`` is requested.
    """

    code: str = "unknown_counter_field"
