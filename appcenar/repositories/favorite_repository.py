# ==============================================================================
# REPOSITORIO DE FAVORITOS
# ==============================================================================
# favoritos.json: pares (cliente, comercio). Un par existe o no existe.
# ==============================================================================

import os
from typing import List, Optional

from appcenar.models import Favorite
from appcenar.repositories.base import DocumentRepository


class FavoriteRepository(DocumentRepository):
    """Comercios favoritos de cada cliente."""

    def __init__(self, data_dir: Optional[str] = None):
        super().__init__(os.path.join(data_dir, 'favoritos.json') if data_dir else None)

    def toggle(self, cliente_id: str, comercio_id: str) -> bool:
        """
        Agrega el favorito si no existe, o lo elimina si existe.

        Se ejecuta completo dentro del lock: un doble click no deja duplicados.

        Returns:
            True si quedó agregado, False si quedó eliminado
        """
        with self._file_lock:
            existing = self.find_all_by(cliente=cliente_id, comercio=comercio_id)
            if existing:
                for doc in existing:
                    self.delete(doc['_id'])
                return False
            self.insert(Favorite(cliente=cliente_id, comercio=comercio_id).to_dict())
            return True

    def is_favorite(self, cliente_id: str, comercio_id: str) -> bool:
        return self.find_by(cliente=cliente_id, comercio=comercio_id) is not None

    def merchant_ids_for(self, cliente_id: str) -> List[str]:
        docs = sorted(self.find_all_by(cliente=cliente_id), key=lambda d: d.get('creado', ''))
        return [d['comercio'] for d in docs]
