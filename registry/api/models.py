"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Field-level rules live in the domain validator; these models only fix the
wire shape (camelCase keys, all values strings).
"""

from pydantic import BaseModel, ConfigDict, Field

from registry.domain.models import Submission


class RegisterRequest(BaseModel):
    """Request model for a registry signup."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: str | None = Field(default=None, max_length=1000)
    zip_code: str | None = Field(default=None, alias="zipCode", max_length=100)
    first_name: str | None = Field(default=None, alias="firstName", max_length=200)
    dpc_status: str | None = Field(default=None, alias="dpcStatus", max_length=200)
    contact_preference: str | None = Field(
        default=None, alias="contactPreference", max_length=200
    )
    referral_source: str | None = Field(default=None, alias="referralSource", max_length=1000)
    utm_source: str | None = Field(default=None, alias="utmSource", max_length=200)
    utm_medium: str | None = Field(default=None, alias="utmMedium", max_length=200)
    utm_campaign: str | None = Field(default=None, alias="utmCampaign", max_length=200)
    website: str | None = Field(
        default=None, description="Honeypot - must be left empty by humans"
    )

    def to_submission(self) -> Submission:
        return Submission(**self.model_dump(by_alias=False))


class RegisterResponse(BaseModel):
    """Response model for an accepted signup."""

    success: bool = True


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str


class ReminderRunResponse(BaseModel):
    """Summary of one reminder/expiry job run."""

    success: bool
    reminders_sent: int
    deletions: int
    errors: list[str]
