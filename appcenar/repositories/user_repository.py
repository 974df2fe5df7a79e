# ==============================================================================
# REPOSITORIO DE USUARIOS
# ==============================================================================
# Encapsula todo el acceso a usuarios.json. Una sola colección para los cuatro
# roles; el perfil específico de cada rol va anidado en "perfil".
#
# IMPORTANTE: este repositorio NUNCA hashea contraseñas. Guarda lo que recibe.
# El hash se hace explícitamente en services/credentials.py.
# ==============================================================================

import os
from typing import Any, Callable, Dict, List, Optional

from appcenar.models import Account, Rol
from appcenar.repositories.base import DocumentRepository


class DuplicateAccountError(Exception):
    """El correo o nombre de usuario ya pertenece a otra cuenta."""

    def __init__(self, field: str):
        super().__init__(f'{field} ya registrado')
        self.field = field


class UserRepository(DocumentRepository):
    """
    Repositorio de cuentas.

    Formato de datos en usuarios.json:
    {
        "<id>": {"_id": "<id>", "correo": "...", "password": "<hash>",
                 "rol": "cliente", "perfil": {...}, "activo": false, ...}
    }
    """

    def __init__(self, data_dir: Optional[str] = None):
        """
        Args:
            data_dir: Directorio de datos; None = colección en memoria
        """
        super().__init__(os.path.join(data_dir, 'usuarios.json') if data_dir else None)

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get_account(self, account_id: Optional[str]) -> Optional[Account]:
        doc = self.get_by_id(account_id)
        return Account.from_dict(doc) if doc else None

    def find_by_login(self, usuario_o_correo: str) -> Optional[Account]:
        """
        Busca por nombre de usuario o por correo.

        Args:
            usuario_o_correo: Lo que el usuario escribió en el login
        """
        value = (usuario_o_correo or '').strip()
        if not value:
            return None
        email = value.lower()
        for doc in self.get_all().values():
            if doc.get('nombre_usuario') == value or doc.get('correo') == email:
                return Account.from_dict(doc)
        return None

    def find_by_token(self, field: str, token: str) -> Optional[Account]:
        """
        Busca la cuenta dueña de un token de un solo uso.

        Args:
            field: 'token_activacion' o 'token_recuperacion'
            token: Valor recibido en la URL
        """
        if not token:
            return None
        doc = self.find_by(**{field: token})
        return Account.from_dict(doc) if doc else None

    def list_by_role(self, rol: Rol, **criteria: Any) -> List[Account]:
        docs = self.find_all_by(rol=Rol(rol).value, **criteria)
        return [Account.from_dict(d) for d in docs]

    def count_by_role(self, rol: Rol, activo: Optional[bool] = None) -> int:
        criteria: Dict[str, Any] = {'rol': Rol(rol).value}
        if activo is not None:
            criteria['activo'] = activo
        return self.count(**criteria)

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def _conflicting_field(self, data: Dict[str, Dict[str, Any]], correo: str,
                           nombre_usuario: Optional[str], exclude_id: Optional[str]) -> Optional[str]:
        for doc_id, doc in data.items():
            if doc_id == exclude_id:
                continue
            if correo and doc.get('correo') == correo:
                return 'correo'
            if nombre_usuario and doc.get('nombre_usuario') == nombre_usuario:
                return 'nombre_usuario'
        return None

    def create_account(self, account: Account) -> Account:
        """
        Inserta una cuenta nueva garantizando correo y usuario únicos.

        La verificación y la escritura ocurren dentro del mismo lock, así dos
        registros simultáneos no pueden crear duplicados.

        Raises:
            DuplicateAccountError: Si el correo o usuario ya existen
        """
        with self._file_lock:
            data = self.get_all()
            conflict = self._conflicting_field(data, account.correo, account.nombre_usuario, None)
            if conflict:
                raise DuplicateAccountError(conflict)
            account.id = self.insert(account.to_dict())
            return account

    def save_account(self, account: Account) -> bool:
        """
        Guarda la cuenta completa tal cual (sin tocar el hash).

        Raises:
            DuplicateAccountError: Si el nuevo correo/usuario choca con otra cuenta
        """
        with self._file_lock:
            data = self.get_all()
            conflict = self._conflicting_field(data, account.correo, account.nombre_usuario, account.id)
            if conflict:
                raise DuplicateAccountError(conflict)
            return self.replace(account.id, account.to_dict())

    def update_account(self, account_id: Optional[str],
                       mutate: Callable[[Account], Optional[bool]]) -> Optional[Account]:
        """
        Lee la cuenta, aplica ``mutate`` y la guarda sin soltar el lock.

        ``mutate`` recibe la versión recién leída, así no se pisan cambios
        hechos por otra petición (activo, perfil.disponible) entre la lectura
        y la escritura. Si ``mutate`` retorna False no se guarda nada.

        Returns:
            La cuenta guardada, o None si no existe o fue rechazada

        Raises:
            DuplicateAccountError: Si el nuevo correo/usuario choca con otra cuenta
        """
        with self._file_lock:
            account = self.get_account(account_id)
            if account is None or mutate(account) is False:
                return None
            self.save_account(account)
            return account

    def consume_token(self, field: str, token: str,
                      mutate: Optional[Callable[[Account], None]] = None) -> Optional[Account]:
        """
        Consume un token de un solo uso: lo busca, lo borra y guarda la cuenta.

        Búsqueda y borrado van bajo el mismo lock; de dos peticiones con el
        mismo token solo una lo encuentra.

        Args:
            field: 'token_activacion' o 'token_recuperacion'
            token: Valor recibido en la URL
            mutate: Cambio adicional sobre la cuenta (activar, nueva contraseña)
        """
        with self._file_lock:
            account = self.find_by_token(field, token)
            if account is None:
                return None
            setattr(account, field, None)
            if mutate:
                mutate(account)
            self.save_account(account)
            return account

    def set_active(self, account_id: str, activo: bool) -> bool:
        return self.update_fields(account_id, {'activo': activo})

    # =========================================================================
    # DELIVERIES
    # =========================================================================

    def claim_available_courier(self) -> Optional[Account]:
        """
        Toma el primer delivery activo y disponible y lo marca ocupado.

        Es una operación compare-and-set bajo el lock: dos comercios no
        pueden reservar al mismo delivery.

        Returns:
            La cuenta reservada (ya con disponible=False) o None
        """
        with self._file_lock:
            doc = self.find_by(rol=Rol.DELIVERY.value, activo=True, **{'perfil.disponible': True})
            if doc is None:
                return None
            account = Account.from_dict(doc)
            account.perfil.disponible = False
            self.replace(account.id, account.to_dict())
            return account

    def set_courier_available(self, account_id: str, disponible: bool) -> bool:
        with self._file_lock:
            account = self.get_account(account_id)
            if account is None or account.rol != Rol.DELIVERY:
                return False
            account.perfil.disponible = disponible
            return self.replace(account.id, account.to_dict())
