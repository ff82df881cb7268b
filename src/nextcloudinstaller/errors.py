"""Domain errors for the Nextcloud installer."""


class InstallerError(RuntimeError):
    """Raised when the installation cannot continue safely."""


class ChecksumMismatchError(InstallerError):
    """Raised when a downloaded release does not match its published digest."""


class CredentialValidationError(ValueError):
    """Raised when an interactively supplied credential is rejected."""
