# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a las colecciones de documentos.
# Los servicios solo conocen estos métodos públicos, no el almacenamiento.
#
# ESTRUCTURA:
# ├── interfaces.py          → Protocolos (contratos de cada repositorio)
# ├── base.py                → BaseRepository, DocumentRepository, ListRepository
# ├── user_repository.py     → usuarios.json (los cuatro roles)
# ├── catalog_repository.py  → tipos_comercio.json, categorias.json, productos.json
# ├── address_repository.py  → direcciones.json
# ├── favorite_repository.py → favoritos.json
# ├── order_repository.py    → pedidos.json
# ├── settings_repository.py → configuracion.json (ITBIS)
# └── audit_repository.py    → actividad.json
#
# MODO PREVIEW: todos aceptan data_dir=None y guardan en memoria.
# ==============================================================================

from .interfaces import (
    IUserRepository,
    IProductRepository,
    IAddressRepository,
    IFavoriteRepository,
    IOrderRepository,
    ISettingsRepository,
)

from .base import BaseRepository, DocumentRepository, ListRepository, RepositoryError
from .user_repository import UserRepository, DuplicateAccountError
from .catalog_repository import BusinessTypeRepository, CategoryRepository, ProductRepository
from .address_repository import AddressRepository
from .favorite_repository import FavoriteRepository
from .order_repository import OrderRepository
from .settings_repository import SettingsRepository
from .audit_repository import AuditRepository

__all__ = [
    # Interfaces
    'IUserRepository',
    'IProductRepository',
    'IAddressRepository',
    'IFavoriteRepository',
    'IOrderRepository',
    'ISettingsRepository',

    # Clases base
    'BaseRepository',
    'DocumentRepository',
    'ListRepository',
    'RepositoryError',

    # Implementaciones
    'UserRepository',
    'DuplicateAccountError',
    'BusinessTypeRepository',
    'CategoryRepository',
    'ProductRepository',
    'AddressRepository',
    'FavoriteRepository',
    'OrderRepository',
    'SettingsRepository',
    'AuditRepository',
]
