"""Error taxonomy for the data-access runtime."""


class GymDataError(Exception):
    """Root of every error raised by the pool and the repositories."""


class PoolError(GymDataError):
    """Connection pool could not serve or accept a connection."""


class PoolInitializationError(PoolError):
    """Opening the initial set of connections failed.

    The failure is sticky: once initialization has failed, every later
    acquire() raises this error (chained to the original cause) instead of
    retrying or waiting.
    """


class PoolExhaustedError(PoolError):
    """No connection became available before the acquire deadline."""


class PoolClosedError(PoolError):
    """The pool has been shut down."""


class ConnectionReleaseError(PoolError):
    """A connection was released that the pool had not lent out.

    Raised on double release and on connections created outside the pool.
    """


class DataAccessError(GymDataError):
    """A repository operation failed.

    Wraps driver failures (bad SQL, constraint violations, lost connections)
    and unexpected result shapes (a delete that touched other than one row,
    a missing row where one was required, an undecodable column value).
    The driver exception, when there is one, is chained as __cause__.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause
