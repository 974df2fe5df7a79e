# ==============================================================================
# REPOSITORIO DE CONFIGURACIÓN GLOBAL
# ==============================================================================
# configuracion.json guarda un único documento con el ITBIS vigente.
# ==============================================================================

import os
from typing import Any, Dict, Optional

from appcenar.models import TaxConfig
from appcenar.repositories.base import BaseRepository


class SettingsRepository(BaseRepository):
    """
    Configuración del sistema (singleton).

    Formato de datos en configuracion.json:
    {"itbis": 18.0}
    """

    def __init__(self, data_dir: Optional[str] = None):
        super().__init__(os.path.join(data_dir, 'configuracion.json') if data_dir else None)

    def _empty_data(self) -> Dict[str, Any]:
        return {}

    def get_tax_config(self) -> TaxConfig:
        """Configuración vigente; ITBIS por defecto si nunca se configuró."""
        return TaxConfig.from_dict(self._read_raw())

    def set_tax_config(self, config: TaxConfig) -> None:
        with self._file_lock:
            data = self._read_raw()
            data.update(config.to_dict())
            self._write_raw(data)
