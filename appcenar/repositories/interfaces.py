# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que deben cumplir los repositorios. Los servicios se tipan contra
# estas interfaces, así cualquier otro almacenamiento de documentos puede
# reemplazar a los archivos JSON sin tocar la lógica de negocio:
#
# 1. Crear la nueva clase con los mismos métodos
# 2. Cambiar la instanciación en app_container.py
# 3. Los servicios NO requieren cambios
#
# ==============================================================================

from typing import Any, Callable, ContextManager, List, Optional, Protocol, runtime_checkable

from appcenar.models import Account, Address, EstadoPedido, Order, Product, Rol, TaxConfig


@runtime_checkable
class IUserRepository(Protocol):
    """Cuentas de los cuatro roles."""

    def get_account(self, account_id: Optional[str]) -> Optional[Account]:
        ...

    def find_by_login(self, usuario_o_correo: str) -> Optional[Account]:
        ...

    def find_by_token(self, field: str, token: str) -> Optional[Account]:
        ...

    def list_by_role(self, rol: Rol, **criteria: Any) -> List[Account]:
        ...

    def count_by_role(self, rol: Rol, activo: Optional[bool] = None) -> int:
        ...

    def create_account(self, account: Account) -> Account:
        """Debe garantizar correo y usuario únicos de forma atómica."""
        ...

    def save_account(self, account: Account) -> bool:
        """Guarda tal cual; nunca hashea."""
        ...

    def update_account(self, account_id: Optional[str],
                       mutate: Callable[[Account], Optional[bool]]) -> Optional[Account]:
        """Leer, modificar y guardar bajo el lock del repositorio."""
        ...

    def consume_token(self, field: str, token: str,
                      mutate: Optional[Callable[[Account], None]] = None) -> Optional[Account]:
        """Buscar y borrar un token de un solo uso de forma atómica."""
        ...

    def set_active(self, account_id: str, activo: bool) -> bool:
        ...

    def claim_available_courier(self) -> Optional[Account]:
        """Reserva atómica del primer delivery activo y disponible."""
        ...

    def set_courier_available(self, account_id: str, disponible: bool) -> bool:
        ...

    def transaction(self) -> ContextManager[Any]:
        ...


@runtime_checkable
class IProductRepository(Protocol):
    """Productos del catálogo."""

    def get_product(self, product_id: Optional[str]) -> Optional[Product]:
        ...

    def get_owned(self, product_id: Optional[str], comercio_id: str) -> Optional[Product]:
        ...

    def get_products(self, product_ids: List[str]) -> List[Product]:
        ...

    def list_for(self, comercio_id: str) -> List[Product]:
        ...

    def save_product(self, product: Product) -> Product:
        ...

    def transaction(self) -> ContextManager[Any]:
        ...


@runtime_checkable
class IAddressRepository(Protocol):
    """Direcciones de clientes, siempre filtradas por dueño."""

    def list_for(self, cliente_id: str) -> List[Address]:
        ...

    def get_owned(self, address_id: Optional[str], cliente_id: str) -> Optional[Address]:
        ...

    def create(self, address: Address) -> Address:
        ...

    def update_owned(self, address_id: str, cliente_id: str, nombre: str, descripcion: str) -> bool:
        ...

    def delete_owned(self, address_id: str, cliente_id: str) -> bool:
        ...


@runtime_checkable
class IFavoriteRepository(Protocol):
    """Favoritos cliente → comercio."""

    def toggle(self, cliente_id: str, comercio_id: str) -> bool:
        ...

    def is_favorite(self, cliente_id: str, comercio_id: str) -> bool:
        ...

    def merchant_ids_for(self, cliente_id: str) -> List[str]:
        ...


@runtime_checkable
class IOrderRepository(Protocol):
    """Pedidos."""

    def get_order(self, order_id: Optional[str]) -> Optional[Order]:
        ...

    def create(self, order: Order) -> Order:
        ...

    def list_by(self, **criteria: Any) -> List[Order]:
        ...

    def set_assignment(self, order_id: str, delivery_id: str) -> bool:
        ...

    def set_status(self, order_id: str, estado: EstadoPedido) -> bool:
        ...

    def transaction(self) -> ContextManager[Any]:
        ...


@runtime_checkable
class ISettingsRepository(Protocol):
    """Configuración global (ITBIS)."""

    def get_tax_config(self) -> TaxConfig:
        ...

    def set_tax_config(self, config: TaxConfig) -> None:
        ...
