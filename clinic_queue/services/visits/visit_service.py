"""
Visit lifecycle hooks outside the call screen.

Scheduling calls ``register_visit``/``update_exams`` so every visit carries
routed room statuses from the moment it exists; reception calls
``set_presence`` when the patient arrives.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_queue.contracts.visit import VisitCreate
from clinic_queue.core.clock import utc_now
from clinic_queue.models.patients import Patient
from clinic_queue.models.visits import Visit
from clinic_queue.services.crud import CRUDBase
from clinic_queue.services.notifications.visit_change_notifier import VisitChangeNotifier
from clinic_queue.services.routing.room_router import resolve_rooms

logger = logging.getLogger(__name__)


class PatientNotFoundError(ValueError):
    pass


def routed_room_fields(exams: Iterable[str]) -> dict:
    return {room.value: status.value for room, status in resolve_rooms(exams).items()}


class VisitService:
    def __init__(self, db: AsyncSession, notifier: Optional[VisitChangeNotifier] = None):
        self.db = db
        self.visits = CRUDBase(Visit, db)
        self.patients = CRUDBase(Patient, db)
        self.notifier = notifier

    async def register_visit(self, payload: VisitCreate) -> Visit:
        """
        Insert a visit with its frozen exam snapshot and routed rooms.

        Raises:
            PatientNotFoundError: unknown patient_id
        """
        if await self.patients.get(payload.patient_id) is None:
            raise PatientNotFoundError(f"Patient {payload.patient_id} not found")

        data = payload.model_dump(exclude={"exams"})
        data.update(
            exams_snapshot=list(payload.exams),
            present=False,
            arrived_at=None,
            display_position=None,
            display_room_label=None,
            **routed_room_fields(payload.exams),
        )
        visit = await self.visits.create(data)
        logger.info("Registered visit %s with exams %s", visit.id, payload.exams)
        await self._publish(visit.id, "visit_registered")
        return await self.visits.get(visit.id)

    async def update_exams(self, visit_id: UUID, exams: Iterable[str]) -> Optional[Visit]:
        """Replace the snapshot and re-route; only the room fields change."""
        exams = list(exams)
        visit = await self.visits.update(
            visit_id, {"exams_snapshot": exams, **routed_room_fields(exams)}
        )
        if visit is None:
            return None
        logger.info("Re-routed visit %s", visit_id)
        await self._publish(visit_id, "exams_updated")
        return await self.visits.get(visit_id)

    async def set_presence(
        self, visit_id: UUID, present: bool, now: Optional[datetime] = None
    ) -> Optional[Visit]:
        """Check the patient in (or undo it); arrival time drives queue order."""
        arrived_at = (now or utc_now()) if present else None
        visit = await self.visits.update(visit_id, {"present": present, "arrived_at": arrived_at})
        if visit is None:
            return None
        await self._publish(visit_id, "checked_in" if present else "check_in_undone")
        return await self.visits.get(visit_id)

    async def _publish(self, visit_id: UUID, event: str) -> None:
        if self.notifier is not None:
            await self.notifier.publish(visit_id, event)
