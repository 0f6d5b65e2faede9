"""Error conditions raised by the forensic detectors."""


class ForensicsError(Exception):
    """Base class for detector failures."""


class InsufficientDataError(ForensicsError, ValueError):
    """Too few qualifying samples for a meaningful test."""

    def __init__(self, n, required):
        self.n = n
        self.required = required
        super().__init__(
            f"need at least {required} qualifying samples, got {n}")


class EmptyDatasetError(ForensicsError, ValueError):
    """Detector called with no observations."""
