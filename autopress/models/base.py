"""Base model class for all stored records."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DBModel(BaseModel):
    """Base model for all database models."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(None, description="Primary key")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
