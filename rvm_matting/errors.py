"""Error kinds raised by the matting pipeline."""


class MattingError(Exception):
    """Base class for all matting pipeline failures."""
    pass


class InvalidImageError(MattingError):
    """Raised when an input image is empty or its channel layout is malformed."""
    pass


class UnsupportedChannelLayoutError(MattingError):
    """Raised when a tensor cannot be decoded into pixels (bad rank or channels)."""
    pass


class MissingStateOutputError(MattingError):
    """Raised when the backend omitted one of the recurrent state outputs."""

    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__(
            f"Backend did not return recurrent outputs: {', '.join(self.missing)}"
        )


class InferenceError(MattingError):
    """Raised when the inference backend fails to run a frame."""

    def __init__(self, diagnostic: str):
        self.diagnostic = diagnostic
        super().__init__(f"Inference failed: {diagnostic}")


class DimensionMismatchError(MattingError):
    """Raised when decoded foreground and alpha sizes differ."""
    pass


class ResultReleasedError(MattingError):
    """Raised when a backend result handle is read after release."""
    pass
