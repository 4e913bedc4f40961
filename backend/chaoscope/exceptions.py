class ChaoscopeError(Exception):
    """Base class for errors raised by chaoscope."""
    pass


class ConfigurationError(ChaoscopeError):
    """Raised when a target URL or injection rule cannot be used."""
    pass


class MetricsFileError(ChaoscopeError):
    """Raised when a recorded metrics file cannot be parsed."""

    def __init__(self, path, line_number, reason):
        self.path = str(path)
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"{self.path}:{line_number}: {reason}")
