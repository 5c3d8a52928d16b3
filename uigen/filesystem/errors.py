"""Error taxonomy shared by the virtual file system, the codec and the tools."""


class FileSystemError(Exception):
    """Base class for all virtual file system errors.

    Every subclass exposes a ``kind`` equal to its class name so that the tool
    layer can report a stable, typed error to the agent.
    """

    kind: str = "FileSystemError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message: str = message


class PathError(FileSystemError):
    kind = "PathError"


class NotFound(FileSystemError):
    kind = "NotFound"


class IsDirectory(FileSystemError):
    kind = "IsDirectory"


class NotADirectory(FileSystemError):
    kind = "NotADirectory"


class AlreadyExists(FileSystemError):
    kind = "AlreadyExists"


class DirectoryNotEmpty(FileSystemError):
    kind = "DirectoryNotEmpty"


class AmbiguousMatch(FileSystemError):
    kind = "AmbiguousMatch"


class NoMatch(FileSystemError):
    kind = "NoMatch"


class LineOutOfRange(FileSystemError):
    kind = "LineOutOfRange"


class InvalidArguments(FileSystemError):
    kind = "InvalidArguments"


class UnsupportedCommand(FileSystemError):
    kind = "UnsupportedCommand"


class InvalidSnapshot(FileSystemError):
    """Raised when an inbound snapshot cannot be turned into a consistent tree."""

    kind = "InvalidSnapshot"
