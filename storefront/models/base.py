# storefront/models/base.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict

class TimeStampedModel(BaseModel):
    """Base model with creation timestamp"""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)
