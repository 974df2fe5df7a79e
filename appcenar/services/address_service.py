# ==============================================================================
# SERVICIO DE DIRECCIONES
# ==============================================================================
# CRUD de direcciones de entrega. El dueño siempre es el cliente de la sesión.
# ==============================================================================

from typing import Any, List, Mapping, Optional

from appcenar.models import Address, ErrorKind, ServiceResult
from appcenar.repositories.interfaces import IAddressRepository

MSG_NOT_FOUND = 'Dirección no encontrada'


class AddressService:
    """Direcciones de los clientes."""

    def __init__(self, address_repo: IAddressRepository):
        self.address_repo = address_repo

    @staticmethod
    def _fields(data: Mapping[str, Any]):
        return (data.get('nombre') or '').strip(), (data.get('descripcion') or '').strip()

    def list_for(self, cliente_id: str) -> List[Address]:
        return self.address_repo.list_for(cliente_id)

    def get(self, cliente_id: str, address_id: Optional[str]) -> Optional[Address]:
        return self.address_repo.get_owned(address_id, cliente_id)

    def create(self, cliente_id: str, data: Mapping[str, Any]) -> ServiceResult:
        nombre, descripcion = self._fields(data)
        if not nombre or not descripcion:
            return ServiceResult.failure('Nombre y descripción son obligatorios')
        address = self.address_repo.create(Address(cliente=cliente_id, nombre=nombre, descripcion=descripcion))
        return ServiceResult.success('Dirección creada exitosamente', address=address)

    def update(self, cliente_id: str, address_id: str, data: Mapping[str, Any]) -> ServiceResult:
        nombre, descripcion = self._fields(data)
        if not nombre or not descripcion:
            return ServiceResult.failure('Nombre y descripción son obligatorios')
        if not self.address_repo.update_owned(address_id, cliente_id, nombre, descripcion):
            return ServiceResult.failure(MSG_NOT_FOUND, ErrorKind.NOT_FOUND)
        return ServiceResult.success('Dirección actualizada exitosamente')

    def delete(self, cliente_id: str, address_id: str) -> ServiceResult:
        if not self.address_repo.delete_owned(address_id, cliente_id):
            return ServiceResult.failure(MSG_NOT_FOUND, ErrorKind.NOT_FOUND)
        return ServiceResult.success('Dirección eliminada exitosamente')
