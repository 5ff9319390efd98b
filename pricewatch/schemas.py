"""
PriceWatch Pydantic Schemas
Request/response models for the API endpoints
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class AlertCreate(BaseModel):
    url: str = Field(..., min_length=1, description="Product page URL on a supported platform")
    target_price: float = Field(..., gt=0)
    user_email: EmailStr

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class AlertResponse(BaseModel):
    id: str
    url: str
    platform: str
    target_price: float
    last_price: Optional[float] = None
    user_email: str
    created_at: datetime
    last_checked: Optional[datetime] = None
    is_active: bool

    class Config:
        from_attributes = True


class SweepSummaryResponse(BaseModel):
    checked: int
    drops: int
    failures: int = 0
    skipped: int = 0
    store_errors: int = 0
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    message: str = "Price check completed"


class HealthCheck(BaseModel):
    status: str
    service: str = "pricewatch"
    version: str
    database: str
    scheduler: str
    platforms: list[str] = []
    timestamp: datetime
