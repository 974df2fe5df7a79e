# ==============================================================================
# REPOSITORIO BASE - Colecciones de documentos en JSON (o en memoria)
# ==============================================================================
# Cada colección es un archivo JSON {id: documento}. En modo preview no hay
# archivo: los documentos viven solo en memoria del proceso.
# ==============================================================================

import copy
import json
import os
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional


class RepositoryError(Exception):
    """Error de infraestructura al leer o escribir una colección."""
    pass


class BaseRepository(ABC):
    """
    Clase base abstracta para todos los repositorios.

    Con ``file_path`` los datos se guardan en disco con escritura atómica
    (archivo temporal + rename). Sin ``file_path`` se guardan en memoria.
    """

    # Lock global: las secuencias leer-modificar-escribir se serializan aquí
    _file_lock = threading.RLock()

    def __init__(self, file_path: Optional[str] = None):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON, o None para memoria
        """
        self.file_path = file_path
        self._memory = self._empty_data()
        if self.file_path:
            self._ensure_file_exists()

    @contextmanager
    def transaction(self):
        """
        Bloque leer-modificar-escribir atómico.

        Toma el lock compartido por todas las colecciones; las llamadas del
        repositorio dentro del bloque lo reutilizan (es re-entrante).
        """
        with self._file_lock:
            yield self

    @property
    def is_persistent(self) -> bool:
        return self.file_path is not None

    def _ensure_file_exists(self) -> None:
        """Crea el archivo con datos vacíos si no existe."""
        directory = os.path.dirname(self.file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(self.file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura vacía (dict, list) según el repositorio."""
        pass

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos de la colección.

        Siempre retorna una copia: modificar el resultado no altera lo guardado
        hasta llamar a ``_write_raw``.

        Raises:
            RepositoryError: Si el archivo no se puede leer
        """
        with self._file_lock:
            if not self.is_persistent:
                return copy.deepcopy(self._memory)
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except json.JSONDecodeError as e:
                raise RepositoryError(f'Colección corrupta: {self.file_path}') from e
            except OSError as e:
                raise RepositoryError(f'No se pudo leer {self.file_path}: {e}') from e

    def _write_raw(self, data: Any) -> None:
        """
        Escribe la colección completa.

        Raises:
            RepositoryError: Si hay error de escritura
        """
        with self._file_lock:
            if not self.is_persistent:
                self._memory = copy.deepcopy(data)
                return
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except OSError as e:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise RepositoryError(f'No se pudo escribir {self.file_path}: {e}') from e


class DocumentRepository(BaseRepository):
    """
    Colección de documentos indexada por ``_id``.

    Ejemplo: pedidos.json -> {"3f2a...": {"_id": "3f2a...", ...}, ...}

    Los filtros aceptan claves con punto para campos anidados
    (``perfil.disponible``).
    """

    def _empty_data(self) -> Dict:
        return {}

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def _field(doc: Dict[str, Any], dotted: str) -> Any:
        value: Any = doc
        for part in dotted.split('.'):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
        return value

    def _matches(self, doc: Dict[str, Any], criteria: Dict[str, Any]) -> bool:
        return all(self._field(doc, k) == v for k, v in criteria.items())

    def get_all(self) -> Dict[str, Dict[str, Any]]:
        return self._read_raw()

    def get_by_id(self, doc_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not doc_id:
            return None
        return self._read_raw().get(str(doc_id))

    def get_many(self, doc_ids: List[str]) -> List[Dict[str, Any]]:
        """Documentos para los ids dados, en el mismo orden; ignora ids inexistentes."""
        data = self._read_raw()
        return [data[i] for i in doc_ids if i in data]

    def insert(self, doc: Dict[str, Any]) -> str:
        """
        Inserta un documento nuevo y retorna su id.

        Args:
            doc: Documento (si trae ``_id`` se respeta)
        """
        with self._file_lock:
            data = self._read_raw()
            doc_id = doc.get('_id') or self.new_id()
            doc['_id'] = doc_id
            data[doc_id] = doc
            self._write_raw(data)
            return doc_id

    def replace(self, doc_id: str, doc: Dict[str, Any]) -> bool:
        """Reemplaza el documento completo. False si no existía."""
        with self._file_lock:
            data = self._read_raw()
            if doc_id not in data:
                return False
            doc['_id'] = doc_id
            data[doc_id] = doc
            self._write_raw(data)
            return True

    def update_fields(self, doc_id: str, updates: Dict[str, Any]) -> bool:
        """Actualiza campos de primer nivel de un documento."""
        with self._file_lock:
            data = self._read_raw()
            if doc_id not in data:
                return False
            data[doc_id].update(updates)
            self._write_raw(data)
            return True

    def delete(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Elimina un documento; retorna el eliminado o None."""
        with self._file_lock:
            data = self._read_raw()
            removed = data.pop(doc_id, None)
            if removed is not None:
                self._write_raw(data)
            return removed

    def find_all_by(self, **criteria: Any) -> List[Dict[str, Any]]:
        return [d for d in self._read_raw().values() if self._matches(d, criteria)]

    def find_by(self, **criteria: Any) -> Optional[Dict[str, Any]]:
        """Primer documento que coincide, o None."""
        for doc in self._read_raw().values():
            if self._matches(doc, criteria):
                return doc
        return None

    def find_where(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        return [d for d in self._read_raw().values() if predicate(d)]

    def count(self, **criteria: Any) -> int:
        return len(self.find_all_by(**criteria))


class ListRepository(BaseRepository):
    """
    Repositorio base para datos almacenados como lista.

    Ejemplo: actividad.json -> [{...}, {...}]
    """

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        self._write_raw(data)
