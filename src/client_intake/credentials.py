"""Secret lookup.

A credential store is any object with ``get_secret(name) -> str`` that raises
SecretNotFoundError when the secret is absent. Stores are built once per
process and reused; secrets are read on every call.
"""
from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Mapping, Optional

from .errors import SecretNotFoundError

log = logging.getLogger("client_intake.credentials")


def env_name(secret_name: str) -> str:
    """AirtableToken -> AIRTABLE_TOKEN"""
    s = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", secret_name)
    return re.sub(r"[^A-Za-z0-9]+", "_", s).upper()


class EnvCredentialStore:
    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def get_secret(self, name: str) -> str:
        for key in (name, env_name(name)):
            value = self.environ.get(key)
            if value:
                return value
        raise SecretNotFoundError(name, f"not set in environment (tried {name}, {env_name(name)})")


class SecretsManagerCredentialStore:
    def __init__(self, region: str = "us-east-1", client: Any = None, timeout: float = 20):
        self.region = region
        self.timeout = timeout
        self._client = client

    @property
    def client(self):
        if self._client is None:
            import boto3
            from botocore.config import Config

            cfg = Config(
                connect_timeout=self.timeout,
                read_timeout=self.timeout,
                retries={"total_max_attempts": 1, "mode": "standard"},
            )
            self._client = boto3.client("secretsmanager", region_name=self.region, config=cfg)
        return self._client

    def get_secret(self, name: str) -> str:
        from botocore.exceptions import BotoCoreError, ClientError

        log.debug("Fetching secret %s from Secrets Manager (%s)", name, self.region)
        try:
            response = self.client.get_secret_value(SecretId=name)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "ClientError")
            raise SecretNotFoundError(name, code) from e
        except BotoCoreError as e:
            raise SecretNotFoundError(name, str(e)) from e

        if response.get("SecretString"):
            return response["SecretString"]
        binary = response.get("SecretBinary")
        if not binary:
            raise SecretNotFoundError(name, "secret has no value")
        if isinstance(binary, str):
            return binary
        return binary.decode("utf-8")


def secret_value(store, name: str, key: str) -> str:
    """Read ``key`` from a JSON secret, or the whole secret when it is a plain string."""
    raw = store.get_secret(name)
    try:
        data = json.loads(raw)
    except ValueError:
        return raw
    if not isinstance(data, dict):
        return raw
    value = data.get(key)
    if not value:
        raise SecretNotFoundError(name, f"key {key} missing")
    return str(value)
