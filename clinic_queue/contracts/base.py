"""
Base contracts shared by every request and response model.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class BaseContract(BaseModel):
    """
    Contracts read straight from ORM rows (``model_validate(visit)``).
    """
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class TimestampedContract(BaseContract):
    """
    Row bookkeeping timestamps; optional because optimistic copies built on
    the operator screen may not carry them.
    """
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
