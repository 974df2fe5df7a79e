# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas solo llaman a servicios y traducen el ServiceResult
#    a flash + redirect / render
# 4. Los servicios NO conocen request, sesión ni el tipo de almacenamiento
#
# ESTRUCTURA:
# ├── credentials.py       → Hash de contraseñas y tokens (una sola función)
# ├── email_service.py     → Correos de activación y recuperación
# ├── audit_service.py     → Registro de actividad
# ├── user_service.py      → Login, registro, activación, reset, perfiles
# ├── catalog_service.py   → Tipos de comercio, categorías, productos
# ├── address_service.py   → Direcciones del cliente
# ├── favorite_service.py  → Comercios favoritos
# ├── order_service.py     → Carrito → pedido → asignación → entrega
# └── admin_service.py     → Dashboard, cuentas, administradores, ITBIS
# ==============================================================================

from appcenar.services.credentials import hash_credential, set_password, verify_credential, new_token
from appcenar.services.email_service import EmailService, EmailDeliveryError
from appcenar.services.audit_service import AuditService
from appcenar.services.user_service import UserService
from appcenar.services.catalog_service import CatalogService
from appcenar.services.address_service import AddressService
from appcenar.services.favorite_service import FavoriteService
from appcenar.services.order_service import OrderService, compute_totals, parse_product_ids
from appcenar.services.admin_service import AdminService

__all__ = [
    'hash_credential',
    'set_password',
    'verify_credential',
    'new_token',
    'EmailService',
    'EmailDeliveryError',
    'AuditService',
    'UserService',
    'CatalogService',
    'AddressService',
    'FavoriteService',
    'OrderService',
    'compute_totals',
    'parse_product_ids',
    'AdminService',
]
