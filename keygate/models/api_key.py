from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiKeyCreate(CamelModel):
    owner_id: str = Field(..., min_length=1, max_length=200)
    name: str | None = Field(None, min_length=1, max_length=100)
    plan: str | None = None


class ApiKeyResponse(CamelModel):
    """Listing entry. Never carries the secret or its hash."""
    id: str
    prefix: str
    name: str | None = None
    plan: str
    daily_quota: int
    active: bool = True
    created_at: str | None = None
    last_used_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "ApiKeyResponse":
        return cls(
            id=row["id"],
            prefix=row["key_prefix"],
            name=row.get("name"),
            plan=row["plan"],
            daily_quota=row["daily_quota"],
            active=row.get("active", True),
            created_at=row.get("created_at"),
            last_used_at=row.get("last_used_at"),
        )


class ApiKeyListResponse(CamelModel):
    keys: list[ApiKeyResponse]


class ApiKeyCreatedResponse(CamelModel):
    """Returned only on creation — plaintext key is shown once."""
    message: str = "API key created. Save this key — it won't be shown again."
    key: str
    key_id: str
    prefix: str
    plan: str
    daily_quota: int


class ApiKeyValidation(CamelModel):
    valid: bool
    key_id: str
    owner_id: str
    plan: str


class MessageResponse(CamelModel):
    message: str
