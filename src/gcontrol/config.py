"""Configuration for gcontrol.

gcontrol is configured by a YAML file that lists the directory servers to
query for group membership and the mapping from directory groups to Grafana
organizations and teams. A few settings that are normally secrets or vary by
deployment may instead be injected via environment variables, which take
precedence over the configuration file. Only the settings with explicit
``validation_alias`` settings support configuration via environment variable.

The configuration is loaded once at startup and never modified afterwards.
All of the per-server models are frozen so that they can be shared between
concurrent synchronization tasks without locking.
"""

from __future__ import annotations

from pathlib import Path
from typing import Self, override

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging
from safir.pydantic import HumanTimedelta

from .constants import MAX_CONCURRENT_SYNCS, MAX_PENDING_SYNCS, SYNC_TIMEOUT

__all__ = [
    "AttributeMapping",
    "CamelCaseModel",
    "CamelCaseSettings",
    "Config",
    "EnvFirstSettings",
    "GrafanaConfig",
    "GroupMapping",
    "ServerConfig",
]


class CamelCaseModel(BaseModel):
    """Base class for frozen configuration models using camel-case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )


class CamelCaseSettings(BaseSettings):
    """Base class for Pydantic settings supporting camel-case.

    This base class also forbids all extra attributes. It should be used as
    the base class (possibly indirectly) for all gcontrol configuration
    models that support environment variable overrides.
    """

    model_config = SettingsConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )


class EnvFirstSettings(CamelCaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    @override
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support. Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and we want environment variables
        to take precedent.
        """
        return (env_settings, init_settings)


def _validate_template(template: str) -> str:
    """Check that a template has exactly one ``%s`` substitution point."""
    try:
        template % ("user",)
    except (TypeError, ValueError) as e:
        msg = "must contain exactly one %s substitution point"
        raise ValueError(msg) from e
    return template


class GroupMapping(CamelCaseModel):
    """Mapping of a directory group to a Grafana organization and team."""

    group_dn: str = Field(
        ...,
        title="Directory group",
        description=(
            "Value of the membership attribute that identifies the group,"
            " usually the DN of the group"
        ),
        examples=["cn=admins,ou=groups,dc=example,dc=com"],
    )

    org_id: int = Field(
        ...,
        title="Grafana organization ID",
        description="Numeric ID of the Grafana organization to grant",
    )

    team_id: int = Field(
        ...,
        title="Grafana team ID",
        description="Numeric ID of the Grafana team within that organization",
    )


class AttributeMapping(CamelCaseModel):
    """Names of the directory attributes read during group resolution."""

    member_of: str = Field(
        "memberOf",
        title="Group membership attribute",
        description=(
            "Attribute of the user entry that lists the groups of which the"
            " user is a member"
        ),
    )


class ServerConfig(CamelCaseModel):
    """Configuration for one directory server.

    Each server is queried independently. A failure to talk to one server
    only means that server contributes no groups for that login.
    """

    host: str = Field(
        ...,
        title="Directory server host",
        description="Hostname or IP address of the LDAP server",
        examples=["ldap.example.com"],
    )

    port: int = Field(
        389, title="Directory server port", ge=1, le=65535
    )

    ssl: bool = Field(
        False,
        title="Use LDAPS",
        description="Connect with TLS from the start (``ldaps`` scheme)",
    )

    start_tls: bool = Field(
        False,
        title="Use StartTLS",
        description="Upgrade a plain connection with StartTLS before binding",
    )

    user: str | None = Field(
        None,
        title="Static bind username",
        description=(
            "If this or ``password`` is set, bind with these credentials"
            " instead of the credentials of the user who logged in. The"
            " user's groups are still searched for by their own username."
        ),
    )

    password: SecretStr | None = Field(
        None,
        title="Static bind password",
        description="Password used with ``user`` for the static bind",
    )

    bind_dn: str = Field(
        ...,
        title="Bind DN template",
        description=(
            "DN with which to bind, with ``%s`` replaced by the username"
        ),
        examples=["uid=%s,ou=people,dc=example,dc=com"],
    )

    search_filter: str = Field(
        ...,
        title="Search filter template",
        description=(
            "LDAP filter that finds the user entry, with ``%s`` replaced by"
            " the username"
        ),
        examples=["(uid=%s)"],
    )

    search_base_dns: list[str] = Field(
        [],
        title="Search bases",
        description=(
            "Base DNs under which to search for the user, searched in order"
        ),
    )

    attributes: AttributeMapping = Field(
        AttributeMapping(), title="Attribute names"
    )

    first_value_only: bool = Field(
        False,
        title="Use only first membership value",
        description=(
            "If set, only the first value of the membership attribute of each"
            " matching entry is used. By default, all values are used."
        ),
    )

    group_mappings: list[GroupMapping] = Field(
        [],
        title="Group mappings",
        description="Grafana grants for members of directory groups",
    )

    @field_validator("bind_dn", "search_filter")
    @classmethod
    def _validate_templates(cls, v: str) -> str:
        return _validate_template(v)

    @property
    def name(self) -> str:
        """Identity of the server for logging and error reporting."""
        return f"{self.host}:{self.port}"

    @property
    def url(self) -> str:
        """LDAP URL of the server."""
        scheme = "ldaps" if self.ssl else "ldap"
        return f"{scheme}://{self.host}:{self.port}"


class GrafanaConfig(CamelCaseModel):
    """Grafana connection settings and TLS settings for the listener.

    The certificate settings live here for compatibility with existing
    gcontrol configuration files, although they apply to the inbound
    listener and not to the connection to Grafana.
    """

    url: HttpUrl | None = Field(
        None,
        title="Grafana URL",
        description="Base URL of the Grafana API that receives grants",
    )

    user: str | None = Field(None, title="Grafana API user")

    password: SecretStr | None = Field(None, title="Grafana API password")

    cert_file: Path | None = Field(
        None,
        title="Listener certificate",
        description=(
            "Path to the TLS certificate for the login listener. TLS is only"
            " enabled if ``certKey`` is also set."
        ),
    )

    cert_key: Path | None = Field(
        None,
        title="Listener private key",
        description="Path to the private key for ``certFile``",
    )

    @model_validator(mode="after")
    def _validate_password(self) -> Self:
        if self.user and not self.password:
            raise ValueError("password required if user is set")
        return self

    @property
    def tls_enabled(self) -> bool:
        """Whether the login listener should use TLS."""
        return bool(self.cert_file and self.cert_key)


class Config(EnvFirstSettings):
    """Configuration for gcontrol."""

    log_level: LogLevel = Field(
        LogLevel.INFO,
        title="Logging level",
        description="Python logging level",
        validation_alias=AliasChoices("GCONTROL_LOG_LEVEL", "logLevel"),
    )

    log_profile: Profile = Field(
        Profile.production,
        title="Logging profile",
        description=(
            "Logging profile: ``production`` for JSON logs or ``development``"
            " for human-readable logs"
        ),
        validation_alias=AliasChoices("GCONTROL_LOG_PROFILE", "logProfile"),
    )

    sync_timeout: HumanTimedelta = Field(
        SYNC_TIMEOUT,
        title="Per-server timeout",
        description=(
            "Time limit for resolving the groups of one user from one"
            " directory server, after which that server is skipped"
        ),
    )

    max_concurrent_syncs: int = Field(
        MAX_CONCURRENT_SYNCS,
        title="Concurrent synchronizations",
        description="Maximum number of synchronizations running at once",
        ge=1,
    )

    max_pending_syncs: int = Field(
        MAX_PENDING_SYNCS,
        title="Pending synchronizations",
        description=(
            "Maximum number of accepted synchronizations that have not yet"
            " finished. Further logins are rejected until some finish."
        ),
        ge=1,
    )

    grafana: GrafanaConfig | None = Field(
        None, title="Grafana configuration"
    )

    servers: list[ServerConfig] = Field(
        ...,
        title="Directory servers",
        description="Directory servers to query, in order",
        min_length=1,
    )

    slack_alerts: bool = Field(
        False,
        title="Enable Slack alerts",
        description=(
            "Whether to enable Slack alerts. If true, ``slack_webhook`` must"
            " also be set."
        ),
    )

    slack_webhook: SecretStr | None = Field(
        None,
        title="Slack webhook for alerts",
        description="If set, alerts will be posted to this Slack webhook",
        validation_alias=AliasChoices(
            "GCONTROL_SLACK_WEBHOOK", "slackWebhook"
        ),
    )

    @model_validator(mode="after")
    def _validate_pending(self) -> Self:
        if self.max_pending_syncs < self.max_concurrent_syncs:
            msg = "maxPendingSyncs must be at least maxConcurrentSyncs"
            raise ValueError(msg)
        return self

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct a Config object from a configuration file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding `Config` object.
        """
        with path.open("r") as f:
            return cls.model_validate(yaml.safe_load(f))

    def configure_logging(self) -> None:
        """Configure logging based on the gcontrol configuration."""
        configure_logging(
            name="gcontrol",
            profile=self.log_profile,
            log_level=self.log_level,
        )
