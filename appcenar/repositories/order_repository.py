# ==============================================================================
# REPOSITORIO DE PEDIDOS
# ==============================================================================
# pedidos.json. Cada pedido lleva embebida la copia de sus productos.
# ==============================================================================

import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from appcenar.models import EstadoPedido, Order
from appcenar.repositories.base import DocumentRepository


class OrderRepository(DocumentRepository):
    """Pedidos de todos los clientes."""

    def __init__(self, data_dir: Optional[str] = None):
        super().__init__(os.path.join(data_dir, 'pedidos.json') if data_dir else None)

    def get_order(self, order_id: Optional[str]) -> Optional[Order]:
        doc = self.get_by_id(order_id)
        return Order.from_dict(doc) if doc else None

    def create(self, order: Order) -> Order:
        order.id = self.insert(order.to_dict())
        return order

    def list_by(self, **criteria: Any) -> List[Order]:
        """Pedidos que coinciden, del más reciente al más antiguo."""
        docs = sorted(self.find_all_by(**criteria), key=lambda d: d.get('fecha_pedido', ''), reverse=True)
        return [Order.from_dict(d) for d in docs]

    def count_between(self, start: datetime, end: datetime) -> int:
        """Pedidos con fecha_pedido en [start, end)."""
        def in_range(doc: Dict[str, Any]) -> bool:
            try:
                ts = datetime.fromisoformat(doc.get('fecha_pedido', ''))
            except ValueError:
                return False
            return start <= ts < end
        return len(self.find_where(in_range))

    def set_assignment(self, order_id: str, delivery_id: str) -> bool:
        return self.update_fields(order_id, {
            'delivery': delivery_id,
            'estado': EstadoPedido.EN_PROCESO.value,
        })

    def set_status(self, order_id: str, estado: EstadoPedido) -> bool:
        return self.update_fields(order_id, {'estado': EstadoPedido(estado).value})
