"""
Identidad explícita del llamante que se propaga a cada operación del servicio.
"""
from dataclasses import dataclass

from classbook.models.user import UserRole


@dataclass(frozen=True)
class Principal:
    id: int
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN)

    @property
    def is_trainer(self) -> bool:
        return self.role == UserRole.TRAINER

    @property
    def is_member(self) -> bool:
        return self.role == UserRole.MEMBER
