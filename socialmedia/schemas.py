"""
Pydantic models shared by every layer.

This module contains:
- Entity models (Account, Message) returned by the stores and services
- Request models for incoming data
- Response models for API responses

Entity models are deliberately lenient: the services own the business
rules (trimming, length limits, ownership), so a candidate that breaks
them must still be representable here.
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Entity Models
# =============================================================================

class Account(BaseModel):
    """
    A registered account.

    account_id is assigned by the store; 0 means "not stored yet".
    """
    account_id: int = Field(default=0, description="Surrogate key assigned on creation")
    username: Optional[str] = Field(None, description="Unique login name")
    password: Optional[str] = Field(None, description="Plain text password")

    model_config = {
        "from_attributes": True,  # Allow creating from ORM objects
        "json_schema_extra": {
            "examples": [
                {
                    "username": "alice",
                    "password": "pass1"
                }
            ]
        }
    }


class Message(BaseModel):
    """
    A short text message owned by exactly one account.
    """
    message_id: int = Field(default=0, description="Surrogate key assigned on creation")
    posted_by: int = Field(default=0, description="account_id of the owning account")
    message_text: Optional[str] = Field(None, description="Message content")
    time_posted_epoch: int = Field(default=0, description="Caller-supplied epoch timestamp")

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "examples": [
                {
                    "posted_by": 1,
                    "message_text": "hi",
                    "time_posted_epoch": 1000
                }
            ]
        }
    }


# =============================================================================
# Pydantic Request Models
# =============================================================================

class MessageTextUpdate(BaseModel):
    """Body of PATCH /messages/{message_id}: only the text can change."""
    message_text: Optional[str] = Field(None, description="New message content")


# =============================================================================
# Pydantic Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
