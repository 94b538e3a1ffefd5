"""Error taxonomy for pg-upsert.

Two tiers:
    ConfigurationError -> raised to the caller (deployment/config defect)
    PayloadError       -> caught by the adapter and reported as a failed outcome
"""


class UpsertError(Exception):
    """Base class for all pg-upsert errors."""


class ConfigurationError(UpsertError):
    """The invocation cannot be attempted at all (no connection is possible)."""


class MissingSecretsError(ConfigurationError):
    """The execution context carries no secrets mapping."""

    def __init__(self, message: str = "ERROR: No secrets found"):
        super().__init__(message)


class MissingSecretError(ConfigurationError):
    """The secrets mapping exists but lacks the requested key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"ERROR: Secret '{key}' not found")


class PayloadError(UpsertError):
    """The write payload or its target cannot be turned into a statement."""


class InvalidIdentifierError(PayloadError):
    """A table, column or constraint name is not a safe SQL identifier."""

    def __init__(self, identifier: str, kind: str = "identifier"):
        self.identifier = identifier
        self.kind = kind
        super().__init__(
            f"Invalid {kind} '{identifier}': must be alphanumeric/underscores, "
            "start with a letter or underscore, and be 1-63 characters"
        )
