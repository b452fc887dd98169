"""Exceptions raised by logbook."""


class LogbookError(Exception):
    """Base class for logbook errors."""


class SourceNotFoundError(LogbookError):
    """The requested source is unknown or has no data on this machine."""

    def __init__(self, source: str):
        super().__init__(f'Source "{source}" not available.')
        self.source = source


class SessionNotFoundError(LogbookError):
    """The source has no session with the requested id."""

    def __init__(self, source: str, session_id: str):
        super().__init__(f'Session "{session_id}" not found for source "{source}".')
        self.source = source
        self.session_id = session_id
