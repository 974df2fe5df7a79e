# ==============================================================================
# SERVICIO DE PEDIDOS
# ==============================================================================
# Flujo completo de un pedido:
#
#   carrito (ids) → vista previa con dirección → pedido "pendiente"
#   → el comercio asigna delivery → "en proceso"
#   → el delivery entrega → "completado"
#
# - El servidor nunca confía en precios o totales enviados por el cliente:
#   siempre vuelve a leer los productos y recalcula.
# - El pedido guarda una copia de cada producto (OrderItem).
# - Ninguna transición vuelve atrás.
# ==============================================================================

import json
from typing import Any, Dict, Iterable, List, Optional, Tuple

from appcenar.models import (
    Account,
    ErrorKind,
    EstadoPedido,
    Order,
    OrderItem,
    Rol,
    ServiceResult,
    SessionUser,
)
from appcenar.performance_logger import profile_function
from appcenar.repositories.base import RepositoryError
from appcenar.repositories.interfaces import (
    IAddressRepository,
    IOrderRepository,
    IProductRepository,
    ISettingsRepository,
    IUserRepository,
)
from appcenar.services.audit_service import AuditService

MSG_ORDER_NOT_FOUND = 'Pedido no encontrado'
MSG_NO_COURIER = 'No hay delivery disponible en este momento. Intente más tarde.'


def compute_totals(prices: Iterable[float], itbis: float) -> Tuple[float, float, float]:
    """
    Calcula subtotal, impuesto y total con 2 decimales.

    impuesto = subtotal * itbis / 100
    total = subtotal + impuesto
    """
    subtotal = round(sum(float(p) for p in prices), 2)
    impuesto = round(subtotal * float(itbis) / 100, 2)
    total = round(subtotal + impuesto, 2)
    return subtotal, impuesto, total


def parse_product_ids(raw: Any) -> List[str]:
    """
    Normaliza los ids del carrito.

    Acepta un arreglo JSON en texto ('["a", "b"]'), una lista (getlist del
    formulario) o ids separados por coma. Elimina vacíos y duplicados
    conservando el orden.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith('['):
            try:
                values = json.loads(text)
            except ValueError:
                return []
            if not isinstance(values, list):
                return []
        else:
            values = text.split(',')
    else:
        values = list(raw)

    ids: List[str] = []
    for value in values:
        if value is None or isinstance(value, (dict, list)):
            continue
        value = str(value).strip()
        if value and value not in ids:
            ids.append(value)
    return ids


class OrderService:
    """
    Servicio de pedidos.

    Responsabilidades:
    - Vista previa del carrito con ITBIS vigente
    - Creación del pedido con copia de productos
    - Listados y detalles filtrados por dueño (cliente, comercio, delivery)
    - Asignación de delivery (comercio) y entrega (delivery)
    """

    def __init__(
        self,
        order_repo: IOrderRepository,
        product_repo: IProductRepository,
        address_repo: IAddressRepository,
        user_repo: IUserRepository,
        settings_repo: ISettingsRepository,
        audit_service: AuditService = None
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.address_repo = address_repo
        self.user_repo = user_repo
        self.settings_repo = settings_repo
        self.audit_service = audit_service

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _merchant(self, comercio_id: Optional[str]) -> Optional[Account]:
        account = self.user_repo.get_account(comercio_id)
        if account is None or account.rol != Rol.COMERCIO or not account.activo:
            return None
        return account

    def _cart_products(self, comercio_id: str, product_ids: List[str]):
        """Productos actuales del carrito; None si alguno no existe o es de otro comercio."""
        products = self.product_repo.get_products(product_ids)
        if len(products) != len(product_ids):
            return None
        if any(p.comercio != comercio_id for p in products):
            return None
        return products

    def current_itbis(self) -> float:
        return self.settings_repo.get_tax_config().itbis

    # =========================================================================
    # CLIENTE: VISTA PREVIA Y CREACIÓN
    # =========================================================================

    def preview(self, cliente_id: str, comercio_id: Optional[str], raw_ids: Any) -> ServiceResult:
        """
        Prepara la pantalla de selección de dirección.

        Returns:
            ServiceResult con comercio, productos, subtotal, itbis, impuesto,
            total, direcciones y productos_ids
        """
        merchant = self._merchant(comercio_id)
        if merchant is None:
            return ServiceResult.failure('Comercio no encontrado', ErrorKind.NOT_FOUND)

        product_ids = parse_product_ids(raw_ids)
        if not product_ids:
            return ServiceResult.failure('Debe seleccionar al menos un producto')

        products = self._cart_products(merchant.id, product_ids)
        if products is None:
            return ServiceResult.failure('Algunos productos ya no están disponibles')

        itbis = self.current_itbis()
        subtotal, impuesto, total = compute_totals([p.precio for p in products], itbis)
        return ServiceResult.success(
            comercio=merchant,
            productos=products,
            productos_ids=product_ids,
            subtotal=subtotal,
            itbis=itbis,
            impuesto=impuesto,
            total=total,
            direcciones=self.address_repo.list_for(cliente_id),
        )

    @profile_function(name='Crear pedido')
    def create_order(
        self,
        user: SessionUser,
        comercio_id: Optional[str],
        raw_ids: Any,
        direccion_id: Optional[str]
    ) -> ServiceResult:
        """
        Crea el pedido en estado pendiente.

        Cualquier referencia faltante aborta antes de escribir nada.

        Args:
            user: Cliente en sesión (dueño del pedido)
            comercio_id: Comercio al que se le pide
            raw_ids: Ids de productos tal como vienen del formulario
            direccion_id: Dirección de entrega del cliente
        """
        if not comercio_id:
            return ServiceResult.failure('Datos del pedido incompletos')

        merchant = self._merchant(comercio_id)
        if merchant is None:
            return ServiceResult.failure('Comercio no encontrado', ErrorKind.NOT_FOUND)

        product_ids = parse_product_ids(raw_ids)
        if not product_ids:
            return ServiceResult.failure('Debe seleccionar al menos un producto')

        if not direccion_id:
            return ServiceResult.failure('Debe seleccionar una dirección de entrega')
        address = self.address_repo.get_owned(direccion_id, user.id)
        if address is None:
            return ServiceResult.failure('Dirección no encontrada', ErrorKind.NOT_FOUND)

        products = self._cart_products(merchant.id, product_ids)
        if products is None:
            return ServiceResult.failure('Algunos productos ya no están disponibles')

        items = [OrderItem.snapshot(p) for p in products]
        itbis = self.current_itbis()
        subtotal, impuesto, total = compute_totals([i.precio for i in items], itbis)

        order = self.order_repo.create(Order(
            cliente=user.id,
            comercio=merchant.id,
            direccion=address.id,
            direccion_entrega=address.descripcion,
            productos=items,
            subtotal=subtotal,
            itbis=itbis,
            impuesto=impuesto,
            total=total,
        ))

        if self.audit_service:
            self.audit_service.log_order_created(user.correo, order.id, total, len(items))

        return ServiceResult.success('Pedido realizado exitosamente', order=order)

    # =========================================================================
    # LISTADOS Y DETALLES (filtrados por dueño)
    # =========================================================================

    def _accounts(self, ids: Iterable[Optional[str]]) -> Dict[str, Account]:
        wanted = {i for i in ids if i}
        return {i: a for i, a in ((i, self.user_repo.get_account(i)) for i in wanted) if a}

    def _with_parties(self, orders: List[Order]) -> List[Dict[str, Any]]:
        """Envuelve cada pedido con las cuentas de cliente, comercio y delivery."""
        accounts = self._accounts(
            [o.cliente for o in orders] + [o.comercio for o in orders] + [o.delivery for o in orders])
        return [{
            'pedido': o,
            'cliente': accounts.get(o.cliente),
            'comercio': accounts.get(o.comercio),
            'delivery': accounts.get(o.delivery) if o.delivery else None,
        } for o in orders]

    def list_for_customer(self, cliente_id: str) -> List[Dict[str, Any]]:
        return self._with_parties(self.order_repo.list_by(cliente=cliente_id))

    def list_for_merchant(self, comercio_id: str) -> List[Dict[str, Any]]:
        return self._with_parties(self.order_repo.list_by(comercio=comercio_id))

    def list_for_courier(self, delivery_id: str) -> List[Dict[str, Any]]:
        return self._with_parties(self.order_repo.list_by(delivery=delivery_id))

    def _detail(self, order: Optional[Order]) -> ServiceResult:
        if order is None:
            return ServiceResult.failure(MSG_ORDER_NOT_FOUND, ErrorKind.NOT_FOUND)
        view = self._with_parties([order])[0]
        return ServiceResult.success(**view)

    def detail_for_customer(self, cliente_id: str, order_id: str) -> ServiceResult:
        order = self.order_repo.get_order(order_id)
        return self._detail(order if order and order.cliente == cliente_id else None)

    def detail_for_merchant(self, comercio_id: str, order_id: str) -> ServiceResult:
        order = self.order_repo.get_order(order_id)
        return self._detail(order if order and order.comercio == comercio_id else None)

    def detail_for_courier(self, delivery_id: str, order_id: str) -> ServiceResult:
        order = self.order_repo.get_order(order_id)
        return self._detail(order if order and order.delivery == delivery_id else None)

    # =========================================================================
    # TRANSICIONES
    # =========================================================================

    @profile_function(name='Asignar delivery')
    def assign_courier(self, user: SessionUser, order_id: str) -> ServiceResult:
        """
        pendiente → en proceso. Solo para pedidos propios del comercio.

        El delivery se reserva primero (disponible=False) y luego se escribe
        el pedido; si esa escritura falla, el delivery se libera de nuevo.
        """
        with self.order_repo.transaction():
            order = self.order_repo.get_order(order_id)
            if order is None or order.comercio != user.id:
                return ServiceResult.failure(MSG_ORDER_NOT_FOUND, ErrorKind.NOT_FOUND)
            if not order.is_pending:
                return ServiceResult.failure('El pedido ya tiene un delivery asignado')

            courier = self.user_repo.claim_available_courier()
            if courier is None:
                return ServiceResult.failure(MSG_NO_COURIER, ErrorKind.UNAVAILABLE)

            try:
                assigned = self.order_repo.set_assignment(order.id, courier.id)
            except RepositoryError:
                self.user_repo.set_courier_available(courier.id, True)
                raise
            if not assigned:
                self.user_repo.set_courier_available(courier.id, True)
                return ServiceResult.failure(MSG_ORDER_NOT_FOUND, ErrorKind.NOT_FOUND)

        if self.audit_service:
            self.audit_service.log_courier_assigned(user.correo, order.id, courier.correo)

        return ServiceResult.success(f'Delivery {courier.display_name} asignado al pedido',
                                     delivery=courier)

    def complete_order(self, user: SessionUser, order_id: str) -> ServiceResult:
        """en proceso → completado. El delivery queda disponible otra vez."""
        with self.order_repo.transaction():
            order = self.order_repo.get_order(order_id)
            if order is None or order.delivery != user.id:
                return ServiceResult.failure(MSG_ORDER_NOT_FOUND, ErrorKind.NOT_FOUND)
            if not order.is_in_progress:
                return ServiceResult.failure('El pedido no está en proceso')

            self.order_repo.set_status(order.id, EstadoPedido.COMPLETADO)
            self.user_repo.set_courier_available(user.id, True)

        if self.audit_service:
            self.audit_service.log_order_completed(user.correo, order.id)

        return ServiceResult.success('Pedido marcado como completado')
