"""Secret types and data structures.

This module defines the staging labels, the versioned secret records
returned by the store, the secret envelopes that carry credential
material and the rotation request delivered by the invoker.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Self
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from credrotate.secrets.exceptions import InvalidRequestError, SerializationError


class StagingLabel(str, Enum):
    """Staging labels recognised by the rotation protocol."""

    CURRENT = "AWSCURRENT"
    PENDING = "AWSPENDING"
    PREVIOUS = "AWSPREVIOUS"


class RotationStep(str, Enum):
    """Steps of the rotation protocol, in delivery order."""

    CREATE_SECRET = "createSecret"
    SET_SECRET = "setSecret"
    TEST_SECRET = "testSecret"
    FINISH_SECRET = "finishSecret"


# Version id -> staging labels attached to it
VersionStages = dict[str, frozenset[str]]


@dataclass(frozen=True, slots=True)
class SecretVersion:
    """A single version of a secret as read from the store.

    Attributes:
        secret_id: Identifier of the secret
        version_id: Identifier of this version
        secret_string: Serialized envelope (UTF-8 JSON text)
        stages: Staging labels attached to this version
    """

    secret_id: str
    version_id: str
    secret_string: str
    stages: frozenset[str] = field(default_factory=frozenset)

    def has_stage(self, stage: StagingLabel | str) -> bool:
        """Check whether this version carries a staging label."""
        label = stage.value if isinstance(stage, StagingLabel) else stage
        return label in self.stages


class SecretEnvelope(BaseModel):
    """Base class for deserialized secret payloads.

    Envelopes are mutable: the target resource's generate operation
    rewrites credential fields in place. Fields unknown to a subclass are
    kept, and serialization writes back exactly the keys that were read
    or assigned.
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    @classmethod
    def from_secret_string(cls, secret_string: str) -> Self:
        """Deserialize an envelope from the store's text representation.

        Raises:
            SerializationError: If the text is not a JSON object of this shape
        """
        try:
            return cls.model_validate_json(secret_string)
        except ValidationError as e:
            raise SerializationError(
                f"Malformed {cls.__name__} payload: {e.error_count()} validation error(s)",
                cause=e,
            ) from e

    def to_secret_string(self) -> str:
        """Serialize the envelope to the store's text representation.

        Raises:
            SerializationError: If a field cannot be encoded as JSON
        """
        try:
            return json.dumps(self.model_dump(mode="json", exclude_unset=True))
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot encode {type(self).__name__}", cause=e) from e


class DatabaseCredentials(SecretEnvelope):
    """Credentials of a single database user.

    Attributes:
        dbname: Database name
        user: Database role the password belongs to
        host: Database host
        password: Current password of the role
        port: Database port
        project_id: Optional hosting project identifier
        branch_id: Optional hosting branch identifier
    """

    dbname: str
    user: str
    host: str
    password: str = Field(repr=False)
    port: int | None = None
    project_id: str | None = None
    branch_id: str | None = None

    def to_url(self, driver: str = "postgresql+asyncpg") -> str:
        """Convert credentials to a database URL.

        Args:
            driver: Database driver (default: postgresql+asyncpg)

        Returns:
            Database connection URL
        """
        # URL-encode credentials in case they contain special characters
        encoded_user = quote_plus(self.user)
        encoded_password = quote_plus(self.password)
        netloc = f"{self.host}:{self.port}" if self.port else self.host
        return f"{driver}://{encoded_user}:{encoded_password}@{netloc}/{self.dbname}"


class RotationRequest(BaseModel):
    """A rotation step request as delivered by the invoker.

    The step is kept as a free string so unknown steps reach the step
    router and fail there with UnknownStepError.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    secret_id: str = Field(alias="SecretId", min_length=1)
    token: str = Field(alias="ClientRequestToken", min_length=1)
    step: str = Field(alias="Step")

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> Self:
        """Parse an invocation payload.

        Raises:
            InvalidRequestError: If a required key is missing or not a string
        """
        try:
            return cls.model_validate(event)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise InvalidRequestError(
                f"Invalid rotation event, bad or missing: {', '.join(fields) or 'payload'}"
            ) from e
