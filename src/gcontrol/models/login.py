"""Models for login notifications."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from .ldap import Credentials

__all__ = ["LoginRequest"]


class LoginRequest(BaseModel):
    """A user login whose group memberships should be synchronized."""

    model_config = ConfigDict(extra="ignore")

    user: StrictStr = Field(
        ...,
        title="Username",
        description="Username the user logged in with",
        examples=["alice"],
        min_length=1,
    )

    password: StrictStr = Field(
        ...,
        title="Password",
        description="Password the user logged in with",
        min_length=1,
    )

    def to_credentials(self) -> Credentials:
        """Convert to the credentials used for directory binds."""
        return Credentials(username=self.user, password=self.password)
