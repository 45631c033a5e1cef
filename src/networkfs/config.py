"""Configuration for the NetworkFilesystem controller."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Self

import yaml
from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging

from .constants import DEFAULT_NAMESPACE, ENV_PREFIX, ROOT_LOGGER

__all__ = ["Config"]


class Config(BaseSettings):
    """Configuration for the NetworkFilesystem controller.

    Values may come from a YAML file, via `from_file`, and from environment
    variables starting with ``NETWORKFS_``. Environment variables take
    precedence.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, extra="forbid", validate_by_name=True
    )

    namespace: Annotated[
        str,
        Field(
            title="NetworkFilesystem namespace",
            description="Namespace holding NetworkFilesystem objects",
            validation_alias=AliasChoices(
                ENV_PREFIX + "NAMESPACE", "namespace"
            ),
        ),
    ] = DEFAULT_NAMESPACE

    node_name: Annotated[
        str | None,
        Field(
            title="Node name",
            description=(
                "Name of the node this controller runs on. Recorded in logs"
                " only."
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "NODE_NAME", "nodeName"
            ),
        ),
    ] = None

    name: Annotated[
        str,
        Field(
            title="Name of application",
            description="Used when reporting problems to Slack",
            validation_alias=AliasChoices(ENV_PREFIX + "NAME", "name"),
        ),
    ] = "networkfs-controller"

    log_level: Annotated[
        LogLevel,
        Field(
            title="Log level",
            validation_alias=AliasChoices(
                ENV_PREFIX + "LOG_LEVEL", "logLevel"
            ),
        ),
    ] = LogLevel.INFO

    log_profile: Annotated[
        Profile,
        Field(
            title="Logging profile",
            description=(
                "``production`` uses JSON logging. ``development`` uses"
                " logging that may be easier for humans to read but that"
                " cannot be easily parsed by computers."
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "LOG_PROFILE", "logProfile"
            ),
        ),
    ] = Profile.production

    slack_webhook: Annotated[
        SecretStr | None,
        Field(
            title="Slack webhook for alerts",
            description=(
                "If set, failures of the endpoint watch will be reported to"
                " Slack via this webhook"
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "SLACK_WEBHOOK", "slackWebhook"
            ),
        ),
    ] = None

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

        Disable :file:`.env` and secret file support and let environment
        variables override init parameters, which come from the YAML file.
        """
        return (env_settings, init_settings)

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Load the controller configuration from a YAML file.

        Parameters
        ----------
        path
            Path to the configuration file.

        Returns
        -------
        Config
            The corresponding configuration.
        """
        with path.open("r") as f:
            return cls(**(yaml.safe_load(f) or {}))

    def configure_logging(self) -> None:
        """Configure logging based on the controller configuration."""
        configure_logging(
            profile=self.log_profile,
            log_level=self.log_level,
            name=ROOT_LOGGER,
        )
