# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

"""Error taxonomy for sandbox operations.

Every error derives from :class:`SandboxError` and from the builtin exception
callers would otherwise expect (``ValueError``, ``LookupError``,
``RuntimeError``), so existing ``except`` clauses keep working. ``http_status``
is the response class an HTTP layer should map the error to.
"""


class SandboxError(Exception):
    """Base class for all sandbox errors."""

    http_status: int = 500


class PathRequiredError(SandboxError, ValueError):
    """Raised when a path argument is empty or missing."""

    http_status = 400

    def __init__(self, message: str = "Path is required"):
        super().__init__(message)


class PathEscapesRootError(SandboxError, ValueError):
    """Raised when a path would resolve outside of the sandbox root."""

    http_status = 400

    def __init__(self, message: str = "Path escapes sandbox root"):
        super().__init__(message)


class ValidationFailedError(SandboxError, ValueError):
    """Raised for malformed caller input."""

    http_status = 400


class NotFoundError(SandboxError, LookupError):
    """Raised when a sandbox or a path inside a sandbox does not exist."""

    http_status = 404


class SandboxDestroyedError(NotFoundError):
    """Raised when a destroyed sandbox handle is used again."""


class AlreadyExistsError(SandboxError):
    http_status = 409


class NotAFileError(SandboxError, ValueError):
    http_status = 400

    def __init__(self, message: str = "Requested path is not a file"):
        super().__init__(message)


class NotADirectoryError(SandboxError, ValueError):  # noqa: A001
    http_status = 400

    def __init__(self, message: str = "Requested path is not a directory"):
        super().__init__(message)


class ExecutionFailedError(SandboxError, RuntimeError):
    """Raised when a command cannot be launched at all."""


class RemoteRequestFailedError(SandboxError, RuntimeError):
    """Raised for transport failures and upstream application errors.

    Attributes:
        status_code: HTTP status of the upstream response, when one was received.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
