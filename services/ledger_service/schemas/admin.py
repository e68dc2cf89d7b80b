"""Admin-only schemas: settings and reconciliation."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AdminSettingResponse(BaseModel):
    key: str
    value: Any = None
    description: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AdminSettingsListResponse(BaseModel):
    settings: list[AdminSettingResponse]
    effective: dict[str, Any]


class UpdateSettingRequest(BaseModel):
    value: Any


class ReconciliationResponse(BaseModel):
    user_id: str
    ledger_sum: str
    stored_balance: str
    consistent: bool
