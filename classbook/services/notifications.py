"""
Aviso a administradores tras cambios en el horario o en las reservas.

El envío real (email, push, chat) es un colaborador externo. El servicio de
horarios solo conoce este puerto y nunca deja que un fallo de envío aborte la
operación principal.
"""
from abc import ABC, abstractmethod
from typing import Optional
import logging

logger = logging.getLogger("notifications")


class AdminNotifier(ABC):

    @abstractmethod
    async def notify_admins(self, title: str, message: str, action_url: Optional[str] = None) -> None:
        ...


class LoggingNotifier(AdminNotifier):
    """Implementación por defecto: registra el aviso en el log."""

    async def notify_admins(self, title: str, message: str, action_url: Optional[str] = None) -> None:
        logger.info(f"[admins] {title}: {message}" + (f" ({action_url})" if action_url else ""))
