"""Azure credential resolution for deployments.

Credentials are referenced by an id (the CI credential reference). The id
selects a group of environment variables, optionally loaded from a local
``.env`` file:

    <ID>_AZURE_TENANT_ID, <ID>_AZURE_CLIENT_ID,
    <ID>_AZURE_CLIENT_SECRET, <ID>_AZURE_SUBSCRIPTION_ID

Without an id (or when a prefixed variable is missing) the plain
``AZURE_*`` names are used.
"""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel

from .exceptions import InvalidArgumentError

FIELDS = ("tenant_id", "client_id", "client_secret", "subscription_id")


class ServicePrincipal(BaseModel):
    tenant_id: str
    client_id: str
    client_secret: str
    subscription_id: str


def env_prefix(credentials_id: Optional[str]) -> str:
    if not credentials_id or not credentials_id.strip():
        return ""
    return re.sub(r"[^A-Za-z0-9]", "_", credentials_id.strip()).upper() + "_"


class CredentialStore:
    """
    Dual-mode credential source:
    - local: service principal from environment variables / .env
    - default: azure.identity.DefaultAzureCredential (managed identity, az login, ...)
    """

    def __init__(self, mode: str = "local", env_file: str = ".env"):
        self.mode = mode.lower().strip()
        self._cache: Dict[str, str] = {}

        if self.mode not in ("local", "default"):
            raise ValueError(f"Unknown credentials mode: {self.mode}")

        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment from {env_path}")

    def get_secret(self, key: str, default: Optional[str] = None) -> Optional[str]:
        if key in self._cache:
            return self._cache[key]

        value = os.getenv(key)
        if value:
            self._cache[key] = value
            return value
        return default

    def _lookup(self, credentials_id: Optional[str], field: str) -> Optional[str]:
        name = f"AZURE_{field.upper()}"
        prefix = env_prefix(credentials_id)
        if prefix:
            value = self.get_secret(prefix + name)
            if value:
                return value
        return self.get_secret(name)

    def subscription_id(self, credentials_id: Optional[str] = None) -> str:
        value = self._lookup(credentials_id, "subscription_id")
        if not value:
            raise InvalidArgumentError(
                f"No subscription id configured for credentials '{credentials_id or 'default'}'"
            )
        return value

    def service_principal(self, credentials_id: Optional[str] = None) -> ServicePrincipal:
        values = {field: self._lookup(credentials_id, field) for field in FIELDS}
        missing = [f for f, v in values.items() if not v]
        if missing:
            raise InvalidArgumentError(
                f"Credentials '{credentials_id or 'default'}' are missing: {', '.join(missing)}"
            )
        return ServicePrincipal(**values)

    def get_credential(self, credentials_id: Optional[str] = None):
        if self.mode == "default":
            from azure.identity import DefaultAzureCredential

            return DefaultAzureCredential()

        from azure.identity import ClientSecretCredential

        sp = self.service_principal(credentials_id)
        return ClientSecretCredential(
            tenant_id=sp.tenant_id,
            client_id=sp.client_id,
            client_secret=sp.client_secret,
        )
