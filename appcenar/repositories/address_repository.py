# ==============================================================================
# REPOSITORIO DE DIRECCIONES
# ==============================================================================
# direcciones.json. Toda lectura/escritura se filtra por el cliente dueño.
# ==============================================================================

import os
from typing import List, Optional

from appcenar.models import Address
from appcenar.repositories.base import DocumentRepository


class AddressRepository(DocumentRepository):
    """Direcciones de entrega de los clientes."""

    def __init__(self, data_dir: Optional[str] = None):
        super().__init__(os.path.join(data_dir, 'direcciones.json') if data_dir else None)

    def list_for(self, cliente_id: str) -> List[Address]:
        return [Address.from_dict(d) for d in self.find_all_by(cliente=cliente_id)]

    def get_owned(self, address_id: Optional[str], cliente_id: str) -> Optional[Address]:
        """Dirección solo si pertenece al cliente; None si no existe o es ajena."""
        doc = self.get_by_id(address_id)
        if not doc or doc.get('cliente') != cliente_id:
            return None
        return Address.from_dict(doc)

    def create(self, address: Address) -> Address:
        address.id = self.insert(address.to_dict())
        return address

    def update_owned(self, address_id: str, cliente_id: str, nombre: str, descripcion: str) -> bool:
        with self._file_lock:
            if self.get_owned(address_id, cliente_id) is None:
                return False
            return self.update_fields(address_id, {'nombre': nombre, 'descripcion': descripcion})

    def delete_owned(self, address_id: str, cliente_id: str) -> bool:
        with self._file_lock:
            if self.get_owned(address_id, cliente_id) is None:
                return False
            return self.delete(address_id) is not None
