# ==============================================================================
# REPOSITORIO DE ACTIVIDAD (AUDITORÍA)
# ==============================================================================
# actividad.json se almacena como lista, más reciente primero.
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from appcenar.models import AuditLog
from appcenar.repositories.base import ListRepository


class AuditRepository(ListRepository):
    """
    Registro de actividad.

    Formato de datos en actividad.json:
    [
        {"id": 12, "tipo": "PEDIDO", "usuario": "ana@correo.com",
         "mensaje": "Pedido ... creado", "related_id": "...", "details": {...},
         "ts": "2024-01-01T10:00:00+00:00"}
    ]
    """

    # Límite de registros para evitar archivos muy grandes
    MAX_LOGS = 5000

    def __init__(self, data_dir: Optional[str] = None):
        super().__init__(os.path.join(data_dir, 'actividad.json') if data_dir else None)

    def log(self, entry: AuditLog) -> AuditLog:
        """Inserta al inicio y recorta a MAX_LOGS."""
        with self._file_lock:
            logs = self.get_all()
            entry.id = max((l.get('id') or 0 for l in logs), default=0) + 1
            logs.insert(0, entry.to_dict())
            self.save_all(logs[:self.MAX_LOGS])
            return entry

    def recent(self, limit: int = 100, tipo: Optional[str] = None) -> List[AuditLog]:
        logs: List[Dict[str, Any]] = self.get_all()
        if tipo:
            logs = [l for l in logs if l.get('tipo') == tipo]
        return [AuditLog.from_dict(l) for l in logs[:limit]]
