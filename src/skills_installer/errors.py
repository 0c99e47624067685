"""Error taxonomy for the skills installer."""


class InstallerError(Exception):
    """Base class for errors that abort a run with exit code 1."""


class CatalogFetchError(InstallerError):
    """Remote catalog unreachable or returned a non-success status."""

    def __init__(self, message: str, status: int | None = None, reason: str = ""):
        super().__init__(message)
        self.status = status
        self.reason = reason


class PreconditionError(InstallerError):
    """Target is in a state the requested operation cannot start from."""


class ApplyError(InstallerError):
    """The working-copy driver failed part-way through an operation."""

    def __init__(self, message: str, step: str = ""):
        super().__init__(message)
        self.step = step


class GitUnavailableError(InstallerError):
    """The git executable could not be found."""


class UserCancelled(Exception):
    """User interrupted an interactive prompt. Not an error exit."""


class EmptySelectionError(Exception):
    """User tried to confirm a selection with no items checked."""
