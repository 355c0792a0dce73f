"""
Elapsed-time timer for the operator's active call.

Purely presentational: it can always be rebuilt from the open attendance
session's started_at, so nothing here is persisted.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from clinic_queue.core.clock import as_utc, utc_now

IDLE_DISPLAY = "00:00"


def format_elapsed(seconds: int) -> str:
    """MM:SS with zero padding; minutes are not capped ('75:03')."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass
class AttendanceTimer:
    started_at: datetime
    patient_name: str = "Paciente"
    visit_id: Optional[UUID] = None

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        now = as_utc(now) if now else utc_now()
        delta = now - as_utc(self.started_at)
        return max(0, int(delta.total_seconds()))

    def display(self, now: Optional[datetime] = None) -> str:
        return format_elapsed(self.elapsed_seconds(now))


def timer_display(timer: Optional[AttendanceTimer], now: Optional[datetime] = None) -> str:
    if timer is None:
        return IDLE_DISPLAY
    return timer.display(now)
