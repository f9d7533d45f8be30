"""
Error taxonomy for the GridFloat engine.

Every engine error carries an explicit kind and message. NODATA during
interpolation is the only recoverable kind; callers catch it per cell and
substitute a sentinel. Everything else invalidates the computation and is
allowed to propagate to the entry point.
"""

from enum import Enum


class ErrorKind(str, Enum):
    NODATA = "nodata"
    MISSING_TILE = "missing_tile"
    MALFORMED_HEADER = "malformed_header"
    FLOAT_SIZE = "float_size"
    MISSING_FILE = "missing_file"
    DATA_SIZE = "data_size"
    FETCH_FAILED = "fetch_failed"
    INTERNAL = "internal"


RECOVERABLE_KINDS = frozenset({ErrorKind.NODATA})


class GridFloatError(Exception):
    """Base error for tile decoding, lookup, and fetching."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def fatal(self) -> bool:
        """Whether this error should abort the whole computation."""
        return self.kind not in RECOVERABLE_KINDS

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class NoDataError(GridFloatError):
    """Interpolation found no valid samples around a point."""

    kind = ErrorKind.NODATA


class MissingTileError(GridFloatError, KeyError):
    """A query landed in a tile that is not loaded in the registry."""

    kind = ErrorKind.MISSING_TILE

    def __str__(self) -> str:
        return self.message


class HeaderFormatError(GridFloatError):
    """A header line does not have exactly two fields."""

    kind = ErrorKind.MALFORMED_HEADER


class FloatSizeError(GridFloatError):
    """The platform's single-precision float is not 4 bytes."""

    kind = ErrorKind.FLOAT_SIZE


class TileFileMissingError(GridFloatError, FileNotFoundError):
    """A header or data file is absent at tile construction."""

    kind = ErrorKind.MISSING_FILE

    def __str__(self) -> str:
        return self.message


class DataFileSizeError(GridFloatError):
    """The data file is shorter than NROWS x NCOLS floats."""

    kind = ErrorKind.DATA_SIZE


class TileFetchError(GridFloatError):
    """A tile could not be downloaded or unpacked."""

    kind = ErrorKind.FETCH_FAILED
