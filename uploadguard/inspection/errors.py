class InspectionError(Exception):
    """Base class for errors raised by the inspection core."""


class UnsupportedArchiveError(InspectionError, ValueError):
    def __init__(self, extension: str):
        super().__init__(f"Unsupported archive extension: {extension!r}")
        self.extension = extension
