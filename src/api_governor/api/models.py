"""
Governor API Models

Pydantic models for the governor status endpoints.
"""

from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field


class WindowUsage(BaseModel):
    """Usage of one rolling rate window"""
    count: int = Field(..., ge=0, description="Admitted calls currently inside the window")
    capacity: int = Field(..., ge=1, description="Maximum admitted calls per window")


class GovernorMetricsResponse(BaseModel):
    """Response model for the governor metrics snapshot"""
    total_requests: int = Field(..., description="Admitted calls")
    successful_requests: int = Field(..., description="Calls recorded as successful")
    failed_requests: int = Field(..., description="Calls recorded as failed")
    rate_limited_requests: int = Field(..., description="Window rejections plus upstream 429s")
    average_response_time_ms: float = Field(..., description="Mean latency of successful calls")
    last_rate_limited_at: Optional[datetime] = Field(default=None, description="Last window rejection")
    circuit_breaker_open: bool = Field(..., description="Whether the breaker is open")
    recommended_delay_ms: float = Field(..., ge=0, description="Suggested wait before the next call")
    windows: Dict[str, WindowUsage] = Field(default_factory=dict, description="Per-window usage")


class MetricsResetResponse(BaseModel):
    """Response model for a metrics reset"""
    status: str = Field(..., description="Reset status")
    message: str = Field(..., description="Status message")
