"""Custom exception classes for the supervoxel engine."""


class SupervoxelError(Exception):
    """Base exception for all supervoxel engine errors."""


class EngineNotStartedError(SupervoxelError, RuntimeError):
    """Raised when a frame is processed before the engine was started."""


class FrameShapeError(SupervoxelError, ValueError):
    """Raised when color/depth images do not match the engine dimensions."""

    def __init__(self, message: str, expected: tuple | None = None, actual: tuple | None = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)
