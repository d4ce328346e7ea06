"""Exceptions raised by the forecast import service."""


class ConfigurationError(Exception):
    """Settings could not be loaded or are invalid."""


class FetchError(Exception):
    """A forecast could not be downloaded for one location."""

    def __init__(self, location: str, message: str):
        self.location = location
        super().__init__(message)
