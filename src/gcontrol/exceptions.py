"""Exceptions for gcontrol."""

from __future__ import annotations

from fastapi import status
from safir.fastapi import ClientRequestError
from safir.models import ErrorLocation
from safir.slack.blockkit import SlackException, SlackMessage, SlackTextField

__all__ = [
    "DirectoryAuthenticationError",
    "DirectoryConnectionError",
    "DirectoryError",
    "DirectorySearchError",
    "PayloadError",
    "SupervisorClosedError",
    "SyncCapacityError",
]


class PayloadError(ClientRequestError):
    """The login notification payload could not be parsed."""

    error = "invalid_payload"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: str | None = None) -> None:
        if field:
            super().__init__(message, ErrorLocation.body, [field])
        else:
            super().__init__(message, ErrorLocation.body)


class SyncCapacityError(ClientRequestError):
    """Too many permission synchronizations are already waiting to run."""

    error = "sync_capacity_exceeded"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class SupervisorClosedError(Exception):
    """Work was submitted to a supervisor that has been shut down."""


class DirectoryError(SlackException):
    """Base exception for failures talking to a directory server.

    These are expected whenever a directory server is down or a user types
    the wrong password, so they are logged and recorded per server rather
    than reported as uncaught exceptions.

    Parameters
    ----------
    message
        Description of the failure.
    server
        Identity (``host:port``) of the directory server.
    user
        Username on whose behalf the operation was attempted.
    """

    def __init__(
        self, message: str, server: str, user: str | None = None
    ) -> None:
        super().__init__(message, user)
        self.server = server

    def to_slack(self) -> SlackMessage:
        """Format the exception as a Slack message, including the server."""
        message = super().to_slack()
        field = SlackTextField(heading="Directory server", text=self.server)
        message.fields.append(field)
        return message


class DirectoryConnectionError(DirectoryError):
    """Unable to open a connection to a directory server."""


class DirectoryAuthenticationError(DirectoryError):
    """The directory server rejected the bind credentials."""


class DirectorySearchError(DirectoryError):
    """A search against a directory server failed."""
