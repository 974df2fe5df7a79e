# ==============================================================================
# SERVICIO DE ADMINISTRACIÓN
# ==============================================================================
# Dashboard, listados de cuentas con conteo de pedidos, activación/desactivación,
# CRUD de administradores y configuración del ITBIS.
#
# REGLA: un administrador no puede desactivar ni editar su propia cuenta.
# ==============================================================================

from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from appcenar.models import (
    Account,
    AdminProfile,
    ErrorKind,
    EstadoPedido,
    Rol,
    ServiceResult,
    SessionUser,
    TaxConfig,
)
from appcenar.performance_logger import profile_function
from appcenar.repositories.interfaces import (
    IOrderRepository,
    IProductRepository,
    ISettingsRepository,
    IUserRepository,
)
from appcenar.repositories.user_repository import DuplicateAccountError
from appcenar.services.audit_service import AuditService
from appcenar.services.credentials import hash_credential, set_password
from appcenar.services.user_service import EMAIL_RE, duplicate_message, validate_new_password

ROLE_LABELS = {
    Rol.CLIENTE: 'Cliente',
    Rol.COMERCIO: 'Comercio',
    Rol.DELIVERY: 'Delivery',
    Rol.ADMINISTRADOR: 'Administrador',
}


def parse_itbis(raw: Any) -> Optional[float]:
    """Porcentaje entre 0 y 100, o None si no es válido."""
    try:
        value = round(float(str(raw).strip()), 2)
    except (TypeError, ValueError):
        return None
    if not 0 <= value <= 100:
        return None
    return value


class AdminService:
    """
    Operaciones de administración.

    Todas reciben al administrador en sesión cuando la acción se audita
    o depende de quién la ejecuta.
    """

    def __init__(
        self,
        user_repo: IUserRepository,
        order_repo: IOrderRepository,
        product_repo: IProductRepository,
        settings_repo: ISettingsRepository,
        audit_service: AuditService = None
    ):
        self.user_repo = user_repo
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.settings_repo = settings_repo
        self.audit_service = audit_service

    def _audit(self, admin: Optional[SessionUser], message: str, related_id: str = '', **details: Any) -> None:
        if self.audit_service:
            self.audit_service.log_admin_action(admin.correo if admin else 'sistema', message, related_id, details)

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    @profile_function(name='Estadísticas del dashboard')
    def dashboard_stats(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Conteos del panel. "Hoy" es el día calendario actual en UTC.

        Args:
            now: Momento de referencia (para tests); por defecto ahora en UTC
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        start = datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)

        stats = {
            'pedidos_total': self.order_repo.count(),
            'pedidos_hoy': self.order_repo.count_between(start, start + timedelta(days=1)),
            'productos': self.product_repo.count(),
        }
        for rol, key in ((Rol.CLIENTE, 'clientes'), (Rol.COMERCIO, 'comercios'), (Rol.DELIVERY, 'deliveries')):
            stats[f'{key}_activos'] = self.user_repo.count_by_role(rol, activo=True)
            stats[f'{key}_inactivos'] = self.user_repo.count_by_role(rol, activo=False)
        return stats

    # =========================================================================
    # LISTADOS DE CUENTAS
    # =========================================================================

    def list_accounts(self, rol: Rol) -> List[Dict[str, Any]]:
        """
        Cuentas de un rol con su cantidad de pedidos.

        Clientes y comercios cuentan todos sus pedidos; los deliveries solo
        los completados.
        """
        rol = Rol(rol)
        counts: Dict[str, int] = {}
        for doc in self.order_repo.get_all().values():
            if rol == Rol.CLIENTE:
                key = doc.get('cliente')
            elif rol == Rol.COMERCIO:
                key = doc.get('comercio')
            elif rol == Rol.DELIVERY and doc.get('estado') == EstadoPedido.COMPLETADO.value:
                key = doc.get('delivery')
            else:
                continue
            if key:
                counts[key] = counts.get(key, 0) + 1

        accounts = sorted(self.user_repo.list_by_role(rol), key=lambda a: a.display_name.lower())
        return [{'cuenta': a, 'pedidos': counts.get(a.id, 0)} for a in accounts]

    def list_admins(self) -> List[Account]:
        return sorted(self.user_repo.list_by_role(Rol.ADMINISTRADOR), key=lambda a: a.display_name.lower())

    def get_admin(self, admin_id: Optional[str]) -> Optional[Account]:
        account = self.user_repo.get_account(admin_id)
        if account is None or account.rol != Rol.ADMINISTRADOR:
            return None
        return account

    def toggle_active(self, admin: SessionUser, account_id: str, rol: Rol) -> ServiceResult:
        """Activa o desactiva una cuenta del rol indicado."""
        if account_id == admin.id:
            return ServiceResult.failure('No puede desactivar su propia cuenta', ErrorKind.FORBIDDEN)

        with self.user_repo.transaction():
            account = self.user_repo.get_account(account_id)
            if account is None or account.rol != Rol(rol):
                return ServiceResult.failure(f'{ROLE_LABELS[Rol(rol)]} no encontrado', ErrorKind.NOT_FOUND)
            nuevo = not account.activo
            self.user_repo.set_active(account.id, nuevo)

        estado = 'activada' if nuevo else 'desactivada'
        self._audit(admin, f'Cuenta {account.correo} {estado}', account.id, activo=nuevo)
        return ServiceResult.success(f'Cuenta {estado} exitosamente', activo=nuevo)

    # =========================================================================
    # ADMINISTRADORES
    # =========================================================================

    def create_admin(self, admin: Optional[SessionUser], data: Mapping[str, Any]) -> ServiceResult:
        """
        Crea un administrador activo. La contraseña se hashea una sola vez.

        Args:
            admin: Administrador que lo crea (None desde la línea de comandos)
            data: nombre, apellido, cedula, correo, nombre_usuario, password,
                  confirmar_password
        """
        error = validate_new_password(data.get('password') or '', data.get('confirmar_password') or '')
        if error:
            return ServiceResult.failure(error)

        fields = {k: (data.get(k) or '').strip() for k in
                  ('nombre', 'apellido', 'cedula', 'correo', 'nombre_usuario')}
        if not all(fields.values()):
            return ServiceResult.failure('Todos los campos son obligatorios')
        if not EMAIL_RE.match(fields['correo'].lower()):
            return ServiceResult.failure('Correo inválido')

        account = Account(
            correo=fields['correo'],
            password_hash='',
            rol=Rol.ADMINISTRADOR,
            perfil=AdminProfile(nombre=fields['nombre'], apellido=fields['apellido'], cedula=fields['cedula']),
            nombre_usuario=fields['nombre_usuario'],
            activo=True,
        )
        set_password(account, data['password'])
        try:
            self.user_repo.create_account(account)
        except DuplicateAccountError as e:
            return ServiceResult.failure(duplicate_message(e), ErrorKind.CONFLICT)

        self._audit(admin, f'Administrador {account.correo} creado', account.id)
        return ServiceResult.success('Administrador creado exitosamente', account=account)

    def bootstrap_admin(self, data: Mapping[str, Any]) -> ServiceResult:
        """Primer administrador del sistema (comando crear-admin)."""
        if self.user_repo.count_by_role(Rol.ADMINISTRADOR) > 0:
            return ServiceResult.failure('Ya existe un administrador', ErrorKind.CONFLICT)
        return self.create_admin(None, data)

    def update_admin(self, admin: SessionUser, admin_id: str, data: Mapping[str, Any]) -> ServiceResult:
        """
        Edita otro administrador.

        La contraseña es opcional: si se deja vacía se conserva el hash actual.
        Los cambios se aplican sobre la cuenta leída dentro del lock, así una
        desactivación simultánea no se revierte.
        """
        if admin_id == admin.id:
            return ServiceResult.failure('No puede editar su propia cuenta', ErrorKind.FORBIDDEN)

        if self.get_admin(admin_id) is None:
            return ServiceResult.failure('Administrador no encontrado', ErrorKind.NOT_FOUND)

        fields = {k: (data.get(k) or '').strip() for k in
                  ('nombre', 'apellido', 'cedula', 'correo', 'nombre_usuario')}
        if not all(fields.values()):
            return ServiceResult.failure('Todos los campos son obligatorios')
        if not EMAIL_RE.match(fields['correo'].lower()):
            return ServiceResult.failure('Correo inválido')

        password_hash = None
        password = data.get('password') or ''
        if password or data.get('confirmar_password'):
            error = validate_new_password(password, data.get('confirmar_password') or '')
            if error:
                return ServiceResult.failure(error)
            password_hash = hash_credential(password)

        def apply(account: Account) -> bool:
            if account.rol != Rol.ADMINISTRADOR:
                return False
            if password_hash:
                account.password_hash = password_hash
            account.correo = fields['correo'].lower()
            account.nombre_usuario = fields['nombre_usuario']
            account.perfil.nombre = fields['nombre']
            account.perfil.apellido = fields['apellido']
            account.perfil.cedula = fields['cedula']
            return True

        try:
            account = self.user_repo.update_account(admin_id, apply)
        except DuplicateAccountError as e:
            return ServiceResult.failure(duplicate_message(e), ErrorKind.CONFLICT)
        if account is None:
            return ServiceResult.failure('Administrador no encontrado', ErrorKind.NOT_FOUND)

        self._audit(admin, f'Administrador {account.correo} editado', account.id)
        return ServiceResult.success('Administrador actualizado exitosamente')

    # =========================================================================
    # CONFIGURACIÓN
    # =========================================================================

    def get_tax_config(self) -> TaxConfig:
        return self.settings_repo.get_tax_config()

    def update_tax(self, admin: SessionUser, raw_itbis: Any) -> ServiceResult:
        itbis = parse_itbis(raw_itbis)
        if itbis is None:
            return ServiceResult.failure('El ITBIS debe ser un número entre 0 y 100')
        self.settings_repo.set_tax_config(TaxConfig(itbis=itbis))
        self._audit(admin, f'ITBIS actualizado a {itbis}%', itbis=itbis)
        return ServiceResult.success('Configuración actualizada exitosamente')
