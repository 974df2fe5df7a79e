# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Centraliza la lógica de cuentas: login, registro, activación, recuperación
# de contraseña y perfiles.
#
# - Este servicio NO depende del tipo de almacenamiento
# - Toda validación vive aquí, NO en las rutas
# - Las rutas reciben un ServiceResult y deciden flash + redirect
# ==============================================================================

import re
from typing import Any, Callable, Mapping, Optional

from appcenar.models import (
    Account,
    CourierProfile,
    CustomerProfile,
    ErrorKind,
    MerchantProfile,
    Rol,
    ServiceResult,
    SessionUser,
)
from appcenar.repositories.interfaces import IUserRepository
from appcenar.repositories.catalog_repository import BusinessTypeRepository
from appcenar.repositories.user_repository import DuplicateAccountError
from appcenar.services.audit_service import AuditService
from appcenar.services.credentials import hash_credential, new_token, set_password, verify_credential
from appcenar.services.email_service import EmailDeliveryError, EmailService

# Construye la URL absoluta que va en el correo a partir del token
UrlBuilder = Callable[[str], str]

MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
HOUR_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')

MSG_BAD_CREDENTIALS = 'Credenciales incorrectas'
MSG_INACTIVE = 'Su cuenta está inactiva. Revise su correo para activarla.'
MSG_PASSWORD_MISMATCH = 'Las contraseñas no coinciden'


def _clean(data: Mapping[str, Any], key: str) -> str:
    return (data.get(key) or '').strip()


def validate_new_password(password: str, confirm: str) -> Optional[str]:
    """Mensaje de error para una contraseña nueva, o None si es válida."""
    if password != confirm:
        return MSG_PASSWORD_MISMATCH
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return f'La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres'
    return None


def duplicate_message(error: DuplicateAccountError) -> str:
    if error.field == 'nombre_usuario':
        return 'El nombre de usuario ya está registrado'
    return 'El correo ya está registrado'


class UserService:
    """
    Servicio de cuentas.

    Responsabilidades:
    - Autenticación (login)
    - Registro de clientes, deliveries y comercios
    - Activación por token y recuperación de contraseña (tokens de un solo uso)
    - Perfiles de cada rol
    """

    SELF_REGISTER_ROLES = frozenset([Rol.CLIENTE, Rol.DELIVERY])

    def __init__(
        self,
        user_repo: IUserRepository,
        business_type_repo: BusinessTypeRepository,
        email_service: EmailService,
        audit_service: AuditService = None
    ):
        """
        Args:
            user_repo: Repositorio de cuentas
            business_type_repo: Tipos de comercio (registro de comercios)
            email_service: Envío de correos de activación / reset
            audit_service: Servicio de auditoría (opcional)
        """
        self.user_repo = user_repo
        self.business_type_repo = business_type_repo
        self.email_service = email_service
        self.audit_service = audit_service

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def authenticate(self, usuario_o_correo: str, password: str) -> ServiceResult:
        """
        Valida credenciales.

        Orden de verificación: existencia → cuenta activa → contraseña.
        Solo hay dos mensajes posibles: credenciales incorrectas o cuenta inactiva.

        Returns:
            ServiceResult con data['user'] = SessionUser si es válido
        """
        account = self.user_repo.find_by_login(usuario_o_correo)
        if account is None:
            return ServiceResult.failure(MSG_BAD_CREDENTIALS)

        if not account.activo:
            return ServiceResult.failure(MSG_INACTIVE, ErrorKind.FORBIDDEN)

        if not verify_credential(account.password_hash, password or ''):
            return ServiceResult.failure(MSG_BAD_CREDENTIALS)

        if self.audit_service:
            self.audit_service.log_login(account.correo, account.rol.value)

        return ServiceResult.success(f'Bienvenido, {account.display_name}.',
                                     user=SessionUser.from_account(account))

    def get_account(self, account_id: Optional[str]) -> Optional[Account]:
        return self.user_repo.get_account(account_id)

    def is_active(self, account_id: Optional[str]) -> bool:
        """True si la cuenta existe y está activa (lo usa el gate de sesión)."""
        account = self.user_repo.get_account(account_id)
        return bool(account and account.activo)

    # =========================================================================
    # REGISTRO
    # =========================================================================

    def _persist_new_account(self, account: Account, build_url: UrlBuilder) -> ServiceResult:
        """
        Guarda una cuenta nueva inactiva y envía el correo de activación.

        Si el correo falla, la cuenta se elimina para que el usuario pueda
        registrarse de nuevo, y el error se propaga.
        """
        try:
            self.user_repo.create_account(account)
        except DuplicateAccountError as e:
            return ServiceResult.failure(duplicate_message(e), ErrorKind.CONFLICT)

        try:
            self.email_service.send_activation(account.correo, account.display_name,
                                               build_url(account.token_activacion))
        except EmailDeliveryError:
            self.user_repo.delete(account.id)
            raise

        if self.audit_service:
            self.audit_service.log_registration(account.correo, account.rol.value, account.id)

        return ServiceResult.success(
            'Registro exitoso. Por favor revise su correo para activar su cuenta.',
            account_id=account.id,
        )

    def register_person(self, data: Mapping[str, Any], build_url: UrlBuilder) -> ServiceResult:
        """
        Registra un cliente o un delivery.

        Args:
            data: Formulario (nombre, apellido, telefono, correo, nombre_usuario,
                  rol, password, confirmar_password, foto)
            build_url: Construye la URL de activación para el token
        """
        error = validate_new_password(data.get('password') or '', data.get('confirmar_password') or '')
        if error:
            return ServiceResult.failure(error)

        try:
            rol = Rol(_clean(data, 'rol') or Rol.CLIENTE.value)
        except ValueError:
            rol = None
        if rol not in self.SELF_REGISTER_ROLES:
            return ServiceResult.failure('Rol inválido')

        nombre = _clean(data, 'nombre')
        apellido = _clean(data, 'apellido')
        telefono = _clean(data, 'telefono')
        correo = _clean(data, 'correo').lower()
        nombre_usuario = _clean(data, 'nombre_usuario')

        if not all([nombre, apellido, telefono, correo, nombre_usuario]):
            return ServiceResult.failure('Todos los campos son obligatorios')
        if not EMAIL_RE.match(correo):
            return ServiceResult.failure('Correo inválido')

        profile_cls = CourierProfile if rol == Rol.DELIVERY else CustomerProfile
        account = Account(
            correo=correo,
            password_hash='',
            rol=rol,
            perfil=profile_cls(nombre=nombre, apellido=apellido, telefono=telefono,
                               foto=_clean(data, 'foto') or None),
            nombre_usuario=nombre_usuario,
            activo=False,
            token_activacion=new_token(),
        )
        set_password(account, data['password'])
        return self._persist_new_account(account, build_url)

    def register_merchant(self, data: Mapping[str, Any], build_url: UrlBuilder) -> ServiceResult:
        """
        Registra un comercio. La unicidad es solo por correo (no tiene usuario).

        Args:
            data: Formulario (nombre_comercio, telefono, correo, hora_apertura,
                  hora_cierre, tipo_comercio, logo, password, confirmar_password)
        """
        error = validate_new_password(data.get('password') or '', data.get('confirmar_password') or '')
        if error:
            return ServiceResult.failure(error)

        nombre_comercio = _clean(data, 'nombre_comercio')
        telefono = _clean(data, 'telefono')
        correo = _clean(data, 'correo').lower()
        hora_apertura = _clean(data, 'hora_apertura')
        hora_cierre = _clean(data, 'hora_cierre')
        tipo_comercio = _clean(data, 'tipo_comercio')

        if not all([nombre_comercio, telefono, correo, hora_apertura, hora_cierre, tipo_comercio]):
            return ServiceResult.failure('Todos los campos son obligatorios')
        if not EMAIL_RE.match(correo):
            return ServiceResult.failure('Correo inválido')
        if not (HOUR_RE.match(hora_apertura) and HOUR_RE.match(hora_cierre)):
            return ServiceResult.failure('Horario inválido (use HH:MM)')
        if self.business_type_repo.get_type(tipo_comercio) is None:
            return ServiceResult.failure('Tipo de comercio inválido')

        account = Account(
            correo=correo,
            password_hash='',
            rol=Rol.COMERCIO,
            perfil=MerchantProfile(
                nombre_comercio=nombre_comercio,
                telefono=telefono,
                hora_apertura=hora_apertura,
                hora_cierre=hora_cierre,
                tipo_comercio=tipo_comercio,
                logo=_clean(data, 'logo') or None,
            ),
            activo=False,
            token_activacion=new_token(),
        )
        set_password(account, data['password'])
        return self._persist_new_account(account, build_url)

    # =========================================================================
    # TOKENS DE UN SOLO USO
    # =========================================================================

    def activate(self, token: str) -> ServiceResult:
        """Activa la cuenta dueña del token y consume el token."""
        def mark_active(account: Account) -> None:
            account.activo = True

        account = self.user_repo.consume_token('token_activacion', token, mark_active)
        if account is None:
            return ServiceResult.failure('Token de activación inválido o expirado', ErrorKind.NOT_FOUND)

        if self.audit_service:
            self.audit_service.log_activation(account.correo, account.id)
        return ServiceResult.success('Cuenta activada exitosamente. Ya puede iniciar sesión.')

    def request_password_reset(self, usuario_o_correo: str, build_url: UrlBuilder) -> ServiceResult:
        """Genera token de recuperación y envía el enlace. No pide la contraseña actual."""
        account = self.user_repo.find_by_login(usuario_o_correo)
        if account is None:
            return ServiceResult.failure('Usuario o correo no encontrado', ErrorKind.NOT_FOUND)

        token = new_token()

        def store_token(fresh: Account) -> None:
            fresh.token_recuperacion = token

        if self.user_repo.update_account(account.id, store_token) is None:
            return ServiceResult.failure('Usuario o correo no encontrado', ErrorKind.NOT_FOUND)
        self.email_service.send_password_reset(account.correo, account.display_name, build_url(token))
        return ServiceResult.success(
            'Se ha enviado un correo con instrucciones para restablecer su contraseña.')

    def check_reset_token(self, token: str) -> ServiceResult:
        if self.user_repo.find_by_token('token_recuperacion', token) is None:
            return ServiceResult.failure('Token inválido o expirado', ErrorKind.NOT_FOUND)
        return ServiceResult.success()

    def reset_password(self, token: str, password: str, confirm: str) -> ServiceResult:
        """Cambia la contraseña con un token de recuperación y lo consume."""
        error = validate_new_password(password or '', confirm or '')
        if error:
            return ServiceResult.failure(error)

        password_hash = hash_credential(password)

        def store_password(fresh: Account) -> None:
            fresh.password_hash = password_hash

        account = self.user_repo.consume_token('token_recuperacion', token, store_password)
        if account is None:
            return ServiceResult.failure('Token inválido o expirado', ErrorKind.NOT_FOUND)

        if self.audit_service:
            self.audit_service.log_password_reset(account.correo, account.id)
        return ServiceResult.success('Contraseña actualizada exitosamente. Ya puede iniciar sesión.')

    # =========================================================================
    # PERFILES
    # =========================================================================

    def update_person_profile(self, account_id: str, data: Mapping[str, Any]) -> ServiceResult:
        """
        Perfil de cliente o delivery: nombre, apellido, telefono, foto.

        Solo se tocan esos campos, sobre la cuenta leída dentro del lock;
        activo y disponible quedan como estén en ese momento.
        """
        account = self.user_repo.get_account(account_id)
        if account is None or account.rol not in (Rol.CLIENTE, Rol.DELIVERY):
            return ServiceResult.failure('Cuenta no encontrada', ErrorKind.NOT_FOUND)

        nombre = _clean(data, 'nombre')
        apellido = _clean(data, 'apellido')
        telefono = _clean(data, 'telefono')
        foto = _clean(data, 'foto')
        if not all([nombre, apellido, telefono]):
            return ServiceResult.failure('Nombre, apellido y teléfono son obligatorios')

        def apply(fresh: Account) -> bool:
            if fresh.rol not in (Rol.CLIENTE, Rol.DELIVERY):
                return False
            fresh.perfil.nombre = nombre
            fresh.perfil.apellido = apellido
            fresh.perfil.telefono = telefono
            if foto:
                fresh.perfil.foto = foto
            return True

        saved = self.user_repo.update_account(account_id, apply)
        if saved is None:
            return ServiceResult.failure('Cuenta no encontrada', ErrorKind.NOT_FOUND)
        return ServiceResult.success('Perfil actualizado exitosamente',
                                     user=SessionUser.from_account(saved))

    def update_merchant_profile(self, account_id: str, data: Mapping[str, Any]) -> ServiceResult:
        """Perfil de comercio: telefono, correo, horario, logo."""
        account = self.user_repo.get_account(account_id)
        if account is None or account.rol != Rol.COMERCIO:
            return ServiceResult.failure('Cuenta no encontrada', ErrorKind.NOT_FOUND)

        telefono = _clean(data, 'telefono')
        correo = _clean(data, 'correo').lower()
        hora_apertura = _clean(data, 'hora_apertura')
        hora_cierre = _clean(data, 'hora_cierre')
        logo = _clean(data, 'logo')
        if not all([telefono, correo, hora_apertura, hora_cierre]):
            return ServiceResult.failure('Todos los campos son obligatorios')
        if not EMAIL_RE.match(correo):
            return ServiceResult.failure('Correo inválido')
        if not (HOUR_RE.match(hora_apertura) and HOUR_RE.match(hora_cierre)):
            return ServiceResult.failure('Horario inválido (use HH:MM)')

        def apply(fresh: Account) -> bool:
            if fresh.rol != Rol.COMERCIO:
                return False
            fresh.correo = correo
            fresh.perfil.telefono = telefono
            fresh.perfil.hora_apertura = hora_apertura
            fresh.perfil.hora_cierre = hora_cierre
            if logo:
                fresh.perfil.logo = logo
            return True

        try:
            saved = self.user_repo.update_account(account_id, apply)
        except DuplicateAccountError as e:
            return ServiceResult.failure(duplicate_message(e), ErrorKind.CONFLICT)
        if saved is None:
            return ServiceResult.failure('Cuenta no encontrada', ErrorKind.NOT_FOUND)
        return ServiceResult.success('Perfil actualizado exitosamente',
                                     user=SessionUser.from_account(saved))
