class SplitError(Exception):
    """Base class for split planning failures."""

    pass


class ConfigurationError(SplitError):
    """Raised when a required setting is missing or invalid."""

    pass


class NotAFileError(SplitError, IsADirectoryError):
    """Raised when an input path is a directory instead of a file."""

    pass
