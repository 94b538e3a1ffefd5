"""Connection-string resolution.

A missing secret is a configuration error: it is raised, never reported as a
failed outcome, because no connection can be attempted without it.
"""

import os
from typing import Optional, Protocol, runtime_checkable

from .exceptions import MissingSecretError, MissingSecretsError
from .invocation import InvocationRecord

PG_STRING_KEY = "pg_string"


@runtime_checkable
class SecretsResolver(Protocol):
    def resolve(self, invocation: InvocationRecord) -> str: ...


class ContextSecretsResolver:
    """Reads ``context.module.secrets[key]`` from the invocation."""

    def __init__(self, key: str = PG_STRING_KEY):
        self.key = key

    def resolve(self, invocation: InvocationRecord) -> str:
        secrets = invocation.context.module.secrets
        if secrets is None:
            raise MissingSecretsError()

        value = secrets.get(self.key)
        if not value:
            raise MissingSecretError(self.key)
        return value


class EnvSecretsResolver:
    """Reads the connection string from an environment variable."""

    def __init__(self, var: str = "PG_UPSERT_PG_STRING"):
        self.var = var

    def resolve(self, invocation: InvocationRecord) -> str:
        value: Optional[str] = os.getenv(self.var)
        if not value:
            raise MissingSecretError(self.var)
        return value
