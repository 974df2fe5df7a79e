# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses, independientes del almacenamiento.
# Cada una sabe convertirse a/desde el documento JSON que guardan los
# repositorios (to_dict / from_dict).
# ==============================================================================

from .entities import (
    # Enumeraciones
    Rol,
    EstadoPedido,
    ErrorKind,
    ROLE_HOMES,
    role_home,

    # Resultados
    ServiceResult,

    # Cuentas
    Account,
    AdminProfile,
    CourierProfile,
    CustomerProfile,
    MerchantProfile,
    SessionUser,
    PROFILE_TYPES,
    profile_from_dict,

    # Catálogo
    BusinessType,
    Category,
    Product,

    # Cliente
    Address,
    Favorite,

    # Pedidos
    Order,
    OrderItem,

    # Configuración y auditoría
    TaxConfig,
    DEFAULT_ITBIS,
    AuditLog,
    utc_now_iso,
)

__all__ = [
    'Rol',
    'EstadoPedido',
    'ErrorKind',
    'ROLE_HOMES',
    'role_home',
    'ServiceResult',
    'Account',
    'AdminProfile',
    'CourierProfile',
    'CustomerProfile',
    'MerchantProfile',
    'SessionUser',
    'PROFILE_TYPES',
    'profile_from_dict',
    'BusinessType',
    'Category',
    'Product',
    'Address',
    'Favorite',
    'Order',
    'OrderItem',
    'TaxConfig',
    'DEFAULT_ITBIS',
    'AuditLog',
    'utc_now_iso',
]
