"""Pydantic v2 models for the validated schema (the generator's IR).

Every model here is frozen and its mappings are read-only views: once the
validator has built a ``Schema`` no component (or hook) can mutate it.  Closed vocabularies (field types, lifecycle events,
auth modes, storage services, ...) are ``str`` enums so that template
selection can branch on them exhaustively.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

Scalar = Union[str, int, float, bool]


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class FieldType(str, Enum):
    """Semantic type of a model field."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    DECIMAL = "decimal"
    DATE = "date"
    REFERENCE = "reference"


class HookEvent(str, Enum):
    """Lifecycle events a model hook may attach to."""
    PRE_VALIDATE = "pre-validate"
    POST_VALIDATE = "post-validate"
    PRE_SAVE = "pre-save"
    POST_SAVE = "post-save"
    PRE_UPDATE = "pre-update"
    POST_UPDATE = "post-update"
    PRE_REMOVE = "pre-remove"
    POST_REMOVE = "post-remove"

    @property
    def timing(self) -> str:
        """``pre`` or ``post``."""
        return self.value.split("-", 1)[0]

    @property
    def action(self) -> str:
        """The persistence action, e.g. ``save``."""
        return self.value.split("-", 1)[1]


class Cardinality(str, Enum):
    ONE = "one"
    MANY = "many"


class Ownership(str, Enum):
    OWNING = "owning"
    OWNED = "owned"


class TargetFamily(str, Enum):
    """Technology family whose template set is rendered."""
    EXPRESS = "express"


class AuthMode(str, Enum):
    NONE = "none"
    JWT = "jwt"
    SESSION = "session"


class StorageBackend(str, Enum):
    MONGODB = "mongodb"
    POSTGRES = "postgres"
    SUPABASE = "supabase"
    FIREBASE = "firebase"


class EmailService(str, Enum):
    NONE = "none"
    RESEND = "resend"
    SENDGRID = "sendgrid"
    MAILGUN = "mailgun"


# ---------------------------------------------------------------------------
# Model members
# ---------------------------------------------------------------------------

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


StorageOptions = Mapping[StorageBackend, Mapping[str, Scalar]]


class FieldModel(_Frozen):
    """A single field of a data model."""
    name: str = Field(..., description="Field name, unique within its model")
    type: FieldType = Field(default=FieldType.STRING, description="Semantic type")
    required: bool = Field(default=False)
    unique: bool = Field(default=False)
    default: Optional[Scalar] = Field(default=None, description="Default literal, if any")
    values: tuple[str, ...] = Field(default=(), description="Allowed values for enum fields")
    target: Optional[str] = Field(default=None, description="Referenced model for reference fields")
    credential: bool = Field(default=False, description="Secret hashed by the credential hook")
    description: str = Field(default="")
    storage: StorageOptions = Field(
        default_factory=dict,
        validate_default=True,
        description="Per-backend storage annotations: backend -> {option: literal}",
    )

    @field_validator("storage", mode="after")
    @classmethod
    def _freeze_storage(cls, value: StorageOptions) -> StorageOptions:
        return MappingProxyType({backend: MappingProxyType(dict(options)) for backend, options in value.items()})

    @field_serializer("storage")
    def _dump_storage(self, value: StorageOptions) -> dict[str, dict[str, Scalar]]:
        return {backend.value: dict(options) for backend, options in value.items()}

    def storage_options(self, backend: StorageBackend) -> dict[str, Scalar]:
        """Annotations declared for *backend* (empty when none)."""
        return dict(self.storage.get(backend, {}))


class Parameter(_Frozen):
    """A method parameter."""
    name: str
    type: str = Field(default="any")


class Method(_Frozen):
    """A model method whose implementation body is opaque text."""
    name: str
    params: tuple[Parameter, ...] = Field(default=())
    returns: str = Field(default="void")
    description: str = Field(default="")
    body: str = Field(default="", description="Uninterpreted implementation body")


class Hook(_Frozen):
    """A lifecycle hook whose implementation body is opaque text."""
    event: HookEvent
    description: str = Field(default="")
    body: str = Field(default="", description="Uninterpreted implementation body")


class Relation(_Frozen):
    """A directed relation between two models of the same schema."""
    name: str = Field(..., description="Relation name, unique within its model")
    source: str
    target: str
    cardinality: Cardinality = Field(default=Cardinality.ONE)
    ownership: Ownership = Field(default=Ownership.OWNING)
    description: str = Field(default="")


class ModelFeatures(_Frozen):
    """Per-model feature flags."""
    auth: bool = Field(default=False, description="Model holds credentials")
    audit: bool = Field(default=False, description="Changes are written to an audit log")
    search: bool = Field(default=False, description="Model gets a search index")
    soft_delete: bool = Field(default=False, description="Deletes only set a deletedAt marker")
    timestamps: bool = Field(default=True, description="createdAt / updatedAt are maintained")


class Model(_Frozen):
    """A data model: ordered fields, methods, hooks and relations."""
    name: str
    description: str = Field(default="")
    fields: tuple[FieldModel, ...] = Field(default=())
    methods: tuple[Method, ...] = Field(default=())
    hooks: tuple[Hook, ...] = Field(default=())
    relations: tuple[Relation, ...] = Field(default=())
    features: ModelFeatures = Field(default_factory=ModelFeatures)

    @property
    def credential_field(self) -> Optional[FieldModel]:
        """The field the credential hook hashes, if the model has one."""
        for field in self.fields:
            if field.credential:
                return field
        for field in self.fields:
            if field.name.lower() == "password":
                return field
        return None


# ---------------------------------------------------------------------------
# Global configuration
# ---------------------------------------------------------------------------

class CorsPolicy(_Frozen):
    """Cross-origin policy applied by the generated application."""
    enabled: bool = Field(default=True)
    origins: tuple[str, ...] = Field(default=("*",))
    credentials: bool = Field(default=False)


class SchemaConfig(_Frozen):
    """Global feature toggles that gate which template sets are selected."""
    name: str = Field(default="generated-app", description="Project name")
    description: str = Field(default="")
    target: TargetFamily = Field(default=TargetFamily.EXPRESS)
    auth: AuthMode = Field(default=AuthMode.NONE)
    storage: StorageBackend = Field(default=StorageBackend.MONGODB)
    email: EmailService = Field(default=EmailService.NONE)
    cors: CorsPolicy = Field(default_factory=CorsPolicy)
    docs: bool = Field(default=True, description="Render documentation artifacts")
    tests: bool = Field(default=True, description="Render test artifacts")


# ---------------------------------------------------------------------------
# Root aggregate
# ---------------------------------------------------------------------------

class Schema(_Frozen):
    """Validated root aggregate: every model plus the global config."""
    models: Mapping[str, Model] = Field(
        default_factory=dict, validate_default=True, description="Declaration-ordered models"
    )
    config: SchemaConfig = Field(default_factory=SchemaConfig)

    @field_validator("models", mode="after")
    @classmethod
    def _freeze_models(cls, value: Mapping[str, Model]) -> Mapping[str, Model]:
        return MappingProxyType(dict(value))

    @field_serializer("models")
    def _dump_models(self, value: Mapping[str, Model]) -> dict[str, Model]:
        return dict(value)

    @property
    def model_names(self) -> list[str]:
        return list(self.models)

    def summary(self) -> dict[str, Any]:
        """Counts used by the CLI summary table."""
        return {
            "models": len(self.models),
            "fields": sum(len(m.fields) for m in self.models.values()),
            "relations": sum(len(m.relations) for m in self.models.values()),
            "auth": self.config.auth.value,
            "storage": self.config.storage.value,
        }
