"""Tagged pipeline errors.

Every failure the pipeline raises on purpose is a ``FlatSketchError``
carrying an ``ErrorKind``.  Callers (retry policy, orchestrator, HTTP
layer) branch on ``err.kind`` rather than on the concrete class:

  transient_inference  — empty / network / rate-limit response from the
                         vision service.  Retried within the bound.
  malformed_output     — the vision response parsed but failed schema
                         validation.  Never retried.
  image_processing     — a vectorization stage could not read its input
                         or produced no usable output.  Never retried.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    TRANSIENT_INFERENCE = "transient_inference"
    MALFORMED_OUTPUT = "malformed_output"
    IMAGE_PROCESSING = "image_processing"


class FlatSketchError(Exception):
    """Base class for all tagged pipeline errors."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.TRANSIENT_INFERENCE


class TransientInferenceError(FlatSketchError):
    """The vision service returned nothing usable for a transient reason."""

    kind = ErrorKind.TRANSIENT_INFERENCE


class MalformedOutputError(FlatSketchError):
    """The vision service answered, but not with the schema we asked for."""

    kind = ErrorKind.MALFORMED_OUTPUT

    def __init__(self, message: str, raw_output: str | None = None) -> None:
        self.raw_output = raw_output
        super().__init__(message)


class ImageProcessingError(FlatSketchError):
    """A bitmap/vector stage failed to read its input or produce output."""

    kind = ErrorKind.IMAGE_PROCESSING

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(f"{stage}: {message}")
