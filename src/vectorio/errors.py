# src/vectorio/errors.py

"""
This module defines the exception hierarchy raised by the vector I/O facade.

Every error carries the offending path, layer, field or driver (when known)
as attributes so callers can build their own messages.
"""

from typing import Optional, Sequence

__all__ = [
    "VectorIOError",
    "UnknownFormat",
    "FileNotFound",
    "LayerNotFound",
    "LayerAmbiguous",
    "MalformedQuery",
    "TargetExists",
    "UnsupportedDriver",
    "SchemaIncompatible",
    "InvalidStageOrder"
]

class VectorIOError(Exception):
    """Base class for all vectorio errors."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        layer: Optional[str] = None,
        field: Optional[str] = None,
        driver: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None
        self.layer = layer
        self.field = field
        self.driver = driver

    def __str__(self) -> str:
        return self.message

class UnknownFormat(VectorIOError, ValueError):
    """No driver matches the path extension and no explicit driver was given."""

class FileNotFound(VectorIOError, FileNotFoundError):
    """The path does not exist and is not a readable remote/archive reference."""

class LayerNotFound(VectorIOError, LookupError):
    """A named layer is absent from the dataset."""

class LayerAmbiguous(VectorIOError, LookupError):
    """The dataset holds several layers and none was named."""

    def __init__(self, message: str, path: Optional[str] = None, layers: Sequence[str] = ()):
        super().__init__(message, path=path)
        self.layers = list(layers)

class MalformedQuery(VectorIOError, ValueError):
    """The attribute query could not be parsed or contradicts other options."""

class TargetExists(VectorIOError, FileExistsError):
    """The write target exists and overwrite was not requested."""

class UnsupportedDriver(VectorIOError, ValueError):
    """The resolved driver cannot perform the requested operation."""

class SchemaIncompatible(VectorIOError, TypeError):
    """Attribute types or geometry mix cannot be represented by the target driver."""

class InvalidStageOrder(VectorIOError, ValueError):
    """Virtual path stages cannot be composed in the requested way."""
