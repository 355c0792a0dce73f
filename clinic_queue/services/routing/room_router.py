"""
Exam to room routing.

Maps the exams selected for a visit onto the rooms the patient must pass
through. Matching is a substring test on lowercased, accent-stripped names,
so "Avaliação Clínica Ocupacional" routes to the physician's office.
"""

import unicodedata
from typing import Dict, Iterable, Tuple

from clinic_queue.models.enums import RoomKey, RoomStatus

EXAM_ROOM_TOKENS: Dict[RoomKey, Tuple[str, ...]] = {
    RoomKey.consultorio: (
        "avaliacao clinica",
        "higidez",
        "psicossocial",
        "psicologica",
        "questionario epilepsia",
        "aspecto da pele",
        "avaliacao vocal",
    ),
    RoomKey.salaexames: (
        "acuidade visual",
        "espirometria",
        "eletrocardiograma",
        "eletroencefalograma",
        "teste palografico",
        "teste de atencao",
        "teste romberg",
    ),
    RoomKey.salacoleta: (
        "hemograma",
        "glicemia",
        "epf",
        "eas",
        "grupo sanguineo",
        "gama gt",
        "tgo",
        "tgp",
        "acido",
        "ala-u",
        "hemoglobina",
        "coprocultura",
        "colesterol",
        "chumbo",
        "creatinina",
        "ferro serico",
        "manganes",
        "reticulocitos",
        "triglicerideos",
        "ige especifica",
        "acetona",
        "anti hav",
        "anti hbs",
        "anti hbsag",
        "anti hcv",
        "carboxihemoglobina",
        "toxicologico",
    ),
    RoomKey.audiometria: ("audiometria",),
    RoomKey.raiox: ("raio-x", "raio x"),
}


def normalize_exam_name(name: str) -> str:
    """Lowercase and drop combining marks ('Atenção' -> 'atencao')."""
    decomposed = unicodedata.normalize("NFD", name.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def resolve_rooms(exams: Iterable[str]) -> Dict[RoomKey, RoomStatus]:
    """
    Route a set of exam names to room statuses.

    Every room gets ``waiting`` when at least one exam belongs to it and
    ``not_applicable`` otherwise. The result does not depend on the order
    of ``exams``; an empty set leaves every room ``not_applicable``.
    """
    normalized = [normalize_exam_name(e) for e in exams if e]
    routed = {}
    for room, tokens in EXAM_ROOM_TOKENS.items():
        hit = any(token in exam for exam in normalized for token in tokens)
        routed[room] = RoomStatus.waiting if hit else RoomStatus.not_applicable
    return routed
