"""
Data Models Module

This module defines Pydantic models for the data exchanged between the
identity provider, this service and the application backend.

Models are organized by functional area:
- Identity models (local identity snapshot, user-info hint)
- Backend models (canonical backend user record)
- Sign-in models (credential sign-in requests and outcomes)
- Service models (health and error responses)
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Identity Models
# ============================================================================

class LocalIdentity(BaseModel):
    """Read-only snapshot of the signed-in user as seen by the identity provider."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(None, description="Identity provider user ID")
    primary_email: Optional[str] = Field(None, description="Primary email address")
    full_name: Optional[str] = Field(None, description="Display name")
    username: Optional[str] = Field(None, description="Username")


class UserInfoHint(BaseModel):
    """
    Projection of LocalIdentity sent to the backend to help first-time account
    linking. The backend derives trust from the identity token only.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="clerkUserId", description="Identity provider user ID")
    email: Optional[str] = Field(None, description="Primary email address")
    name: str = Field(default="", description="Display name, empty when unset")
    username: str = Field(default="", description="Username, empty when unset")

    @classmethod
    def from_identity(cls, identity: Optional[LocalIdentity]) -> "UserInfoHint":
        if identity is None:
            return cls()
        return cls(
            user_id=identity.id,
            email=identity.primary_email,
            name=identity.full_name or "",
            username=identity.username or "",
        )

    def to_wire(self) -> Dict[str, Any]:
        """Wire form: camelCase keys, absent IDs and emails omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# Backend Models
# ============================================================================

class BackendUser(BaseModel):
    """
    Canonical account record returned by the backend profile endpoint.

    Unknown fields are kept so the record is stored exactly as received.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: Optional[str] = None
    username: Optional[str] = None
    # Plain addresses, or IdP email-address objects carrying "email_address"
    emails: Optional[Union[str, List[Any]]] = Field(None, alias="email")
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @property
    def email_list(self) -> List[str]:
        if self.emails is None:
            return []
        if isinstance(self.emails, str):
            return [self.emails]
        addresses = []
        for entry in self.emails:
            if isinstance(entry, dict):
                entry = entry.get("email_address")
            if isinstance(entry, str) and entry:
                addresses.append(entry)
        return addresses


# ============================================================================
# Sign-in Models
# ============================================================================

class SignInRequest(BaseModel):
    """Credential sign-in request from the sign-in form."""
    identifier: str = Field(..., description="Email address or username", min_length=1)
    password: str = Field(..., description="Password", min_length=1)


class SignInResponse(BaseModel):
    """Outcome of a credential sign-in attempt."""
    status: Optional[str] = Field(None, description="Identity provider sign-in status")
    error: Optional[str] = Field(None, description="Human-readable error message")


# ============================================================================
# Service Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")


class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error details")
