"""Configuration loading and Pydantic models for r2store."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from r2store.errors import ConfigurationError

_R2_DOMAIN = "r2.cloudflarestorage.com"


class ClientConfig(BaseModel):
    """Connection and credential configuration for a StorageClient.

    Either ``endpoint`` or ``account_id`` must be set. When only the account
    id is given, the endpoint is derived from it (and from ``jurisdiction``
    when one is set).
    """

    account_id: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    jurisdiction: str = ""
    endpoint: str = ""
    region: str = "auto"
    addressing_style: str = "path"
    public_urls: dict[str, list[str]] = Field(default_factory=dict)

    def endpoint_url(self) -> str:
        """Return the S3 API endpoint this configuration points at.

        Raises:
            ConfigurationError: If neither endpoint nor account_id is set.
        """
        if self.endpoint:
            return self.endpoint
        if not self.account_id:
            raise ConfigurationError("Either 'endpoint' or 'account_id' must be configured")
        if self.jurisdiction:
            return f"https://{self.account_id}.{self.jurisdiction}.{_R2_DOMAIN}"
        return f"https://{self.account_id}.{_R2_DOMAIN}"


def _parse_r2(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the r2 section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    return {
        "account_id": data.get("account_id", ""),
        "access_key_id": data.get("access_key_id", ""),
        "secret_access_key": data.get("secret_access_key", ""),
        "jurisdiction": data.get("jurisdiction", ""),
        "endpoint": data.get("endpoint", ""),
        "region": data.get("region", "auto"),
        "addressing_style": data.get("addressing_style", "path"),
    }


def _parse_public_urls(data: dict[str, Any] | None) -> dict[str, list[str]]:
    """Parse the public_urls section: bucket name -> URL or list of URLs."""
    if data is None:
        return {}
    result: dict[str, list[str]] = {}
    for bucket, urls in data.items():
        if isinstance(urls, str):
            result[bucket] = [urls]
        else:
            result[bucket] = list(urls or [])
    return result


def load_config(path: Path) -> ClientConfig:
    """Load a ClientConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A ClientConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return ClientConfig(
        **_parse_r2(raw.get("r2")),
        public_urls=_parse_public_urls(raw.get("public_urls")),
    )
