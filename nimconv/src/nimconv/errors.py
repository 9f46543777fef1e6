"""Exceptions raised by the NIM/NIP converter."""


class NimError(Exception):
    """Base class for every failure reported by the converter."""


class ParameterError(NimError):
    """Raised when command parameters have the wrong count or shape."""


class FileOpenError(NimError):
    """Raised when a source cannot be read or a destination cannot be created."""


class PaletteFormatError(NimError):
    """Raised for unrecognized or malformed palette content."""


class ImageDecodeError(NimError):
    """Raised when the source image cannot be decoded."""


class ConstraintError(NimError):
    """Raised when an image or palette violates output constraints."""
