from .visit_service import PatientNotFoundError, VisitService, routed_room_fields
