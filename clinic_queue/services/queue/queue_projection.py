"""
Active queue projection.

Turns the raw visits of a day into the ordered list the call screen shows:
checked in, still owed at least one room, priority first and then
first-come-first-served by arrival.
"""

from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_queue.core.clock import as_utc, clinic_today
from clinic_queue.models.enums import ACTIVE_ROOM_STATUSES, RoomKey, RoomStatus
from clinic_queue.models.visits import Visit

from .repository import VisitQueueRepository

_NEVER = datetime.max.replace(tzinfo=timezone.utc)


def room_status_of(visit, room: RoomKey) -> RoomStatus:
    return RoomStatus(getattr(visit, room.value))


def has_pending_rooms(visit) -> bool:
    return any(room_status_of(visit, room) in ACTIVE_ROOM_STATUSES for room in RoomKey)


def queue_sort_key(visit):
    arrived = as_utc(visit.arrived_at) if visit.arrived_at else _NEVER
    return (not bool(visit.priority), arrived)


def project_active_queue(visits: Iterable, today: date) -> List:
    """
    Filter and order visits for the active queue.

    Works on anything exposing the visit attributes (ORM rows or
    VisitResponse contracts).
    """
    active = [
        v for v in visits
        if v.scheduled_date == today and v.present and has_pending_rooms(v)
    ]
    return sorted(active, key=queue_sort_key)


class QueueProjectionService:
    """
    Loads today's checked-in visits and projects the active queue.
    """

    def __init__(self, db: AsyncSession):
        self.repository = VisitQueueRepository(db)

    async def active_queue(self, today: Optional[date] = None) -> List[Visit]:
        today = today or clinic_today()
        visits = await self.repository.list_day_visits(today, present_only=True)
        return project_active_queue(visits, today)
