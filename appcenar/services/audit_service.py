# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza el registro de actividad con mensajes humanizados.
# Los administradores lo consultan en /admin/actividad.
# ==============================================================================

from typing import Any, Dict, List, Optional

from appcenar.models import AuditLog
from appcenar.repositories.audit_repository import AuditRepository


class AuditService:
    """
    Servicio para registro y consulta de actividad.

    Categorías: CUENTA (login, registro, activación, contraseñas),
    PEDIDO (creación, asignación, entrega), ADMIN (acciones de administración).
    """

    TYPE_CUENTA = 'CUENTA'
    TYPE_PEDIDO = 'PEDIDO'
    TYPE_ADMIN = 'ADMIN'

    def __init__(self, audit_repo: AuditRepository):
        self.audit_repo = audit_repo

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> AuditLog:
        """
        Registra un evento genérico.

        Args:
            log_type: CUENTA, PEDIDO o ADMIN
            user: Correo de quien realizó la acción ('sistema' si nadie)
            message: Mensaje descriptivo
            related_id: Id relacionado (pedido, cuenta...)
            details: Datos adicionales
        """
        entry = AuditLog(
            tipo=log_type,
            usuario=user or 'sistema',
            mensaje=message,
            related_id=related_id or '',
            details=details or {},
        )
        return self.audit_repo.log(entry)

    # =========================================================================
    # CUENTAS
    # =========================================================================

    def log_login(self, user: str, rol: str) -> None:
        self.log(self.TYPE_CUENTA, user, f"Inicio de sesión de {user} ({rol})")

    def log_registration(self, user: str, rol: str, account_id: str) -> None:
        self.log(self.TYPE_CUENTA, user, f"Nueva cuenta {rol}: {user}", account_id, {'rol': rol})

    def log_activation(self, user: str, account_id: str) -> None:
        self.log(self.TYPE_CUENTA, user, f"Cuenta activada: {user}", account_id)

    def log_password_reset(self, user: str, account_id: str) -> None:
        self.log(self.TYPE_CUENTA, user, f"Contraseña restablecida: {user}", account_id)

    # =========================================================================
    # PEDIDOS
    # =========================================================================

    def log_order_created(self, user: str, order_id: str, total: float, items_count: int) -> None:
        self.log(
            self.TYPE_PEDIDO, user,
            f"Pedido {order_id[:8]} creado - Total: RD$ {total:.2f} - {items_count} productos",
            order_id, {'total': total, 'items_count': items_count},
        )

    def log_courier_assigned(self, user: str, order_id: str, courier: str) -> None:
        self.log(
            self.TYPE_PEDIDO, user,
            f"Pedido {order_id[:8]}: delivery {courier} asignado",
            order_id, {'delivery': courier},
        )

    def log_order_completed(self, user: str, order_id: str) -> None:
        self.log(self.TYPE_PEDIDO, user, f"Pedido {order_id[:8]} entregado", order_id)

    # =========================================================================
    # ADMINISTRACIÓN
    # =========================================================================

    def log_admin_action(self, admin: str, message: str, related_id: str = '',
                         details: Optional[Dict[str, Any]] = None) -> None:
        self.log(self.TYPE_ADMIN, admin, message, related_id, details)

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def recent(self, limit: int = 100, log_type: Optional[str] = None) -> List[AuditLog]:
        return self.audit_repo.recent(limit, log_type)
