"""Error types shared across virt-toolkit.

Library code raises these; only the CLI layer turns them into exit codes
and coloured messages.
"""
from __future__ import annotations


class VirtError(Exception):
    """Base class for every error raised by virt-toolkit."""


class ConfigError(VirtError):
    """Raised when configuration is missing or inconsistent."""


class InputFileError(VirtError):
    """Raised when an input file cannot be read or has the wrong shape."""


class SeedError(VirtError):
    """Raised when a YAML seed document cannot be compiled."""


class SeedRefNotFoundError(SeedError):
    """Raised when a ``ref`` value in a seed row matches no row."""

    def __init__(self, table: str, predicates: list[str]) -> None:
        self.table = table
        self.predicates = predicates
        filters = ", ".join(predicates) or "no filter"
        super().__init__(f"Seed ref not found: {table}({filters})")


class CommandError(VirtError):
    """Raised when an external command exits with a non-zero status.

    Parameters
    ----------
    command:
        The executable that was run, e.g. ``"psql"``.
    args:
        Arguments passed to the executable.
    returncode:
        The process exit status.
    stderr:
        Captured standard error, if any.
    """

    def __init__(
        self,
        command: str,
        args: list[str],
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        details = stderr.strip()
        suffix = f": {details}" if details else ""
        super().__init__(f"Command failed ({command} {' '.join(args)}){suffix}")


class ApiError(VirtError):
    """Raised when the party API answers with an error status.

    Parameters
    ----------
    status_code:
        HTTP status of the failed response, or ``None`` when unknown.
    payload:
        Decoded response body (JSON when possible, else text).
    sent_payload:
        The request body that was sent, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        payload: object = None,
        sent_payload: object = None,
    ) -> None:
        self.status_code = status_code
        self.payload = payload
        self.sent_payload = sent_payload
        super().__init__(message)


class VirtualApiError(VirtError):
    """Raised when a virtual API directory cannot be loaded."""


class SchemaError(VirtError):
    """Raised when a schema file cannot be turned into SQL."""


class PrismaDiffEmptyError(SchemaError):
    """Raised when ``prisma migrate diff`` produced no SQL."""

    def __init__(self, details: str = "") -> None:
        self.details = details
        message = "Prisma diff produced no SQL output."
        if details:
            message = f"Prisma diff produced no SQL output. Details: {details}"
        super().__init__(message)
