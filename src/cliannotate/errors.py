"""Exception hierarchy for cliannotate.

Only configuration errors are fatal. Oracle errors are raised by the oracle
client and absorbed per line by the pipeline, which passes the line through
unannotated.
"""


class CliAnnotateError(Exception):
    """Base class for all cliannotate errors."""

    pass


class ConfigError(CliAnnotateError):
    """Raised when configuration is structurally invalid (fatal at setup)."""

    pass


class OracleError(CliAnnotateError):
    """Base class for oracle failures."""

    pass


class OracleUnavailableError(OracleError):
    """Raised when the oracle process cannot be reached, crashes or times out.

    The failing process is not reused; the next call spawns a fresh one.
    """

    pass


class MalformedOracleResponseError(OracleError):
    """Raised when oracle output does not match the expected shape."""

    pass


__all__ = [
    "CliAnnotateError",
    "ConfigError",
    "MalformedOracleResponseError",
    "OracleError",
    "OracleUnavailableError",
]
