"""
Comprobación de derecho a reservar según la membresía del miembro.

La validez de la membresía y los planes se gestionan fuera de este motor.
"""
from abc import ABC, abstractmethod


class EntitlementChecker(ABC):

    @abstractmethod
    async def is_entitled(self, member_id: int, occurrence_id: int) -> bool:
        ...


class AllowAllEntitlements(EntitlementChecker):
    """Sin colaborador de membresías: todas las reservas están permitidas."""

    async def is_entitled(self, member_id: int, occurrence_id: int) -> bool:
        return True
