"""
Queue service dependency injection.
"""

from typing import Optional

from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_queue.config import get_settings
from clinic_queue.dependencies.db import get_db
from clinic_queue.dependencies.redis_client import get_redis_client
from clinic_queue.services.attendance import AttendanceLedger
from clinic_queue.services.notifications import VisitChangeNotifier
from clinic_queue.services.queue import (
    QueueProjectionService,
    RoomStatusStateMachine,
    VisitQueueRepository,
)
from clinic_queue.services.visits import VisitService


def get_visit_change_notifier(
    redis: Optional[Redis] = Depends(get_redis_client),
) -> VisitChangeNotifier:
    return VisitChangeNotifier(redis, get_settings().queue_change_channel)


def get_attendance_ledger(db: AsyncSession = Depends(get_db)) -> AttendanceLedger:
    return AttendanceLedger(db)


def get_queue_repository(db: AsyncSession = Depends(get_db)) -> VisitQueueRepository:
    return VisitQueueRepository(db)


def get_queue_projection(db: AsyncSession = Depends(get_db)) -> QueueProjectionService:
    return QueueProjectionService(db)


def get_room_state_machine(
    db: AsyncSession = Depends(get_db),
    ledger: AttendanceLedger = Depends(get_attendance_ledger),
    notifier: VisitChangeNotifier = Depends(get_visit_change_notifier),
) -> RoomStatusStateMachine:
    """State machine sharing the request's session with its ledger."""
    return RoomStatusStateMachine(db, ledger=ledger, notifier=notifier)


def get_visit_service(
    db: AsyncSession = Depends(get_db),
    notifier: VisitChangeNotifier = Depends(get_visit_change_notifier),
) -> VisitService:
    return VisitService(db, notifier=notifier)
