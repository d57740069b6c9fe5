"""Tool input and HTTP response models.

Input schemas for every MCP tool, with field-level constraints and
null-byte stripping / Unicode NFC normalization on free-text fields.
Write tools carry a ``confirm`` flag that must be ``True`` to proceed.
"""

from pydantic import BaseModel, Field, field_validator

from jamf_gateway.security.input_validators import sanitize_string


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    service: str
    version: str
    status: str
    uptime_seconds: float


class CircuitSnapshot(BaseModel):
    """One circuit breaker as reported by GET /health/circuits."""

    name: str
    state: str
    failure_count: int
    retry_after_seconds: float
    total_calls: int
    total_failures: int
    total_rejections: int
    total_successes: int


class CircuitResetResponse(BaseModel):
    """Response model for POST /admin/circuits/reset."""

    reset: str
    remaining: list[str]


# ── Shared sanitization validator ───────────────────────────────────────


def _sanitize_str_field(v: str) -> str:
    """Pydantic field_validator wrapper around sanitize_string."""
    if isinstance(v, str):
        return sanitize_string(v)
    return v


_ID_PATTERN = r"^[0-9]+$"


# ── Read tools ─────────────────────────────────────────────────────────


class SearchComputersInput(BaseModel):
    """Input for search_computers tool."""

    query: str = Field(default="", max_length=500)
    page: int = Field(default=0, ge=0)
    page_size: int = Field(default=100, ge=1, le=2000)

    @field_validator("query", mode="before")
    @classmethod
    def sanitize_query(cls, v: str) -> str:
        return _sanitize_str_field(v)

    def to_params(self) -> dict:
        """Query parameters for the computers-inventory endpoint."""
        params: dict = {
            "section": "GENERAL",
            "page": self.page,
            "page-size": self.page_size,
        }
        if self.query:
            term = self.query.replace('"', "")
            params["filter"] = f'general.name=="*{term}*"'
        return params


class GetComputerDetailsInput(BaseModel):
    """Input for get_computer_details tool."""

    computer_id: str = Field(..., pattern=_ID_PATTERN)


class ListPoliciesInput(BaseModel):
    """Input for list_policies tool."""

    limit: int = Field(default=100, ge=1, le=1000)
    category: str = Field(default="", max_length=200)

    @field_validator("category", mode="before")
    @classmethod
    def sanitize_category(cls, v: str) -> str:
        return _sanitize_str_field(v)


class GetPolicyDetailsInput(BaseModel):
    """Input for get_policy_details tool."""

    policy_id: str = Field(..., pattern=_ID_PATTERN)


class ListComputerGroupsInput(BaseModel):
    """Input for list_computer_groups tool."""

    group_type: str = Field(default="all", pattern=r"^(all|smart|static)$")


# ── Write tools ────────────────────────────────────────────────────────


class UpdateInventoryInput(BaseModel):
    """Input for update_inventory tool."""

    computer_id: str = Field(..., pattern=_ID_PATTERN)
    confirm: bool = False


class DeleteComputerInput(BaseModel):
    """Input for delete_computer tool."""

    computer_id: str = Field(..., pattern=_ID_PATTERN)
    confirm: bool = False


class BatchInventoryUpdateInput(BaseModel):
    """Input for skill_batch_inventory_update tool."""

    computer_ids: list[str] = Field(..., min_length=1, max_length=200)
    max_concurrent: int = Field(default=5, ge=1, le=50)
    confirm: bool = False

    @field_validator("computer_ids")
    @classmethod
    def validate_ids(cls, v: list[str]) -> list[str]:
        for computer_id in v:
            if not computer_id.isdigit():
                raise ValueError(f"Invalid computer id: {computer_id!r}")
        return v
