# ==============================================================================
# SERVICIO DE CATÁLOGO
# ==============================================================================
# Tipos de comercio (admin), listado de comercios para clientes, catálogo
# agrupado por categoría y el mantenimiento de categorías/productos que hace
# cada comercio sobre lo suyo.
# ==============================================================================

import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from appcenar.models import (
    Account,
    BusinessType,
    Category,
    ErrorKind,
    Product,
    Rol,
    ServiceResult,
)
from appcenar.repositories.catalog_repository import (
    BusinessTypeRepository,
    CategoryRepository,
)
from appcenar.repositories.interfaces import IProductRepository, IUserRepository

UNCATEGORIZED = 'Sin categoría'


def parse_price(raw: Any) -> Optional[float]:
    """Precio >= 0 redondeado a 2 decimales, o None si no es válido."""
    try:
        price = round(float(str(raw).strip()), 2)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


class CatalogService:
    """
    Servicio de catálogo.

    Responsabilidades:
    - CRUD de tipos de comercio (solo admins llegan aquí)
    - Listado de comercios activos por tipo, con búsqueda
    - Catálogo de un comercio agrupado por categoría
    - CRUD de categorías y productos filtrado por comercio dueño
    """

    def __init__(
        self,
        business_type_repo: BusinessTypeRepository,
        category_repo: CategoryRepository,
        product_repo: IProductRepository,
        user_repo: IUserRepository
    ):
        self.business_type_repo = business_type_repo
        self.category_repo = category_repo
        self.product_repo = product_repo
        self.user_repo = user_repo

    # =========================================================================
    # TIPOS DE COMERCIO
    # =========================================================================

    def list_business_types(self) -> List[BusinessType]:
        return self.business_type_repo.list_types()

    def get_business_type(self, type_id: Optional[str]) -> Optional[BusinessType]:
        return self.business_type_repo.get_type(type_id)

    def business_type_usage(self) -> Dict[str, int]:
        """Cantidad de comercios por tipo (para la vista de admin)."""
        usage: Dict[str, int] = {}
        for merchant in self.user_repo.list_by_role(Rol.COMERCIO):
            key = merchant.perfil.tipo_comercio
            usage[key] = usage.get(key, 0) + 1
        return usage

    def save_business_type(self, data: Mapping[str, Any], type_id: Optional[str] = None) -> ServiceResult:
        """Crea (sin type_id) o edita un tipo de comercio."""
        nombre = (data.get('nombre') or '').strip()
        descripcion = (data.get('descripcion') or '').strip()
        if not nombre:
            return ServiceResult.failure('El nombre es obligatorio')

        if type_id:
            business_type = self.business_type_repo.get_type(type_id)
            if business_type is None:
                return ServiceResult.failure('Tipo de comercio no encontrado', ErrorKind.NOT_FOUND)
            business_type.nombre = nombre
            business_type.descripcion = descripcion
            if (data.get('icono') or '').strip():
                business_type.icono = data['icono'].strip()
            message = 'Tipo de comercio actualizado'
        else:
            business_type = BusinessType(nombre=nombre, descripcion=descripcion,
                                         icono=(data.get('icono') or '').strip() or None)
            message = 'Tipo de comercio creado'

        self.business_type_repo.save_type(business_type)
        return ServiceResult.success(message, business_type=business_type)

    def delete_business_type(self, type_id: str) -> ServiceResult:
        """No se elimina mientras algún comercio lo use."""
        with self.business_type_repo.transaction():
            if self.business_type_repo.get_type(type_id) is None:
                return ServiceResult.failure('Tipo de comercio no encontrado', ErrorKind.NOT_FOUND)
            in_use = self.business_type_usage().get(type_id, 0)
            if in_use:
                return ServiceResult.failure(
                    f'No se puede eliminar: {in_use} comercio(s) usan este tipo', ErrorKind.CONFLICT)
            self.business_type_repo.delete(type_id)
        return ServiceResult.success('Tipo de comercio eliminado')

    # =========================================================================
    # VISTA DEL CLIENTE
    # =========================================================================

    def list_merchants(self, tipo_id: Optional[str] = None, busqueda: str = '') -> List[Account]:
        """
        Comercios activos, opcionalmente filtrados por tipo y por nombre.

        Args:
            tipo_id: Id del tipo de comercio (None = todos)
            busqueda: Texto a buscar en el nombre, sin distinguir mayúsculas
        """
        criteria: Dict[str, Any] = {'activo': True}
        if tipo_id:
            criteria['perfil.tipo_comercio'] = tipo_id
        merchants = self.user_repo.list_by_role(Rol.COMERCIO, **criteria)

        term = (busqueda or '').strip().lower()
        if term:
            merchants = [m for m in merchants if term in m.perfil.nombre_comercio.lower()]
        return sorted(merchants, key=lambda m: m.perfil.nombre_comercio.lower())

    def get_active_merchant(self, comercio_id: Optional[str]) -> Optional[Account]:
        merchant = self.user_repo.get_account(comercio_id)
        if merchant is None or merchant.rol != Rol.COMERCIO or not merchant.activo:
            return None
        return merchant

    def grouped_catalog(self, comercio_id: str) -> List[Tuple[str, List[Product]]]:
        """
        Productos del comercio agrupados por nombre de categoría.

        Los productos sin categoría (o con una categoría ya borrada) van al
        final bajo "Sin categoría".
        """
        names = {c.id: c.nombre for c in self.category_repo.list_for(comercio_id)}
        groups: Dict[str, List[Product]] = {}
        for product in self.product_repo.list_for(comercio_id):
            name = names.get(product.categoria, UNCATEGORIZED)
            groups.setdefault(name, []).append(product)

        ordered = sorted(((k, v) for k, v in groups.items() if k != UNCATEGORIZED),
                         key=lambda group: group[0].lower())
        if UNCATEGORIZED in groups:
            ordered.append((UNCATEGORIZED, groups[UNCATEGORIZED]))
        return ordered

    # =========================================================================
    # CATEGORÍAS DEL COMERCIO
    # =========================================================================

    def list_categories(self, comercio_id: str) -> List[Category]:
        return self.category_repo.list_for(comercio_id)

    def category_product_counts(self, comercio_id: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for product in self.product_repo.list_for(comercio_id):
            if product.categoria:
                counts[product.categoria] = counts.get(product.categoria, 0) + 1
        return counts

    def get_category(self, comercio_id: str, category_id: Optional[str]) -> Optional[Category]:
        return self.category_repo.get_owned(category_id, comercio_id)

    def save_category(self, comercio_id: str, data: Mapping[str, Any],
                      category_id: Optional[str] = None) -> ServiceResult:
        nombre = (data.get('nombre') or '').strip()
        descripcion = (data.get('descripcion') or '').strip()
        if not nombre:
            return ServiceResult.failure('El nombre es obligatorio')

        if category_id:
            category = self.category_repo.get_owned(category_id, comercio_id)
            if category is None:
                return ServiceResult.failure('Categoría no encontrada', ErrorKind.NOT_FOUND)
            category.nombre = nombre
            category.descripcion = descripcion
            message = 'Categoría actualizada'
        else:
            category = Category(comercio=comercio_id, nombre=nombre, descripcion=descripcion)
            message = 'Categoría creada'

        self.category_repo.save_category(category)
        return ServiceResult.success(message, category=category)

    def delete_category(self, comercio_id: str, category_id: str) -> ServiceResult:
        """Elimina la categoría; sus productos quedan sin categoría."""
        with self.category_repo.transaction():
            if self.category_repo.get_owned(category_id, comercio_id) is None:
                return ServiceResult.failure('Categoría no encontrada', ErrorKind.NOT_FOUND)
            self.product_repo.clear_category(category_id)
            self.category_repo.delete(category_id)
        return ServiceResult.success('Categoría eliminada')

    # =========================================================================
    # PRODUCTOS DEL COMERCIO
    # =========================================================================

    def list_products(self, comercio_id: str) -> List[Product]:
        return self.product_repo.list_for(comercio_id)

    def get_product(self, comercio_id: str, product_id: Optional[str]) -> Optional[Product]:
        return self.product_repo.get_owned(product_id, comercio_id)

    def save_product(self, comercio_id: str, data: Mapping[str, Any],
                     product_id: Optional[str] = None) -> ServiceResult:
        """
        Crea o edita un producto del comercio.

        La categoría, si se indica, debe pertenecer al mismo comercio.
        """
        nombre = (data.get('nombre') or '').strip()
        descripcion = (data.get('descripcion') or '').strip()
        precio = parse_price(data.get('precio'))
        categoria = (data.get('categoria') or '').strip() or None
        imagen = (data.get('imagen') or '').strip() or None

        if not nombre:
            return ServiceResult.failure('El nombre es obligatorio')
        if precio is None:
            return ServiceResult.failure('Precio inválido')
        if categoria and self.category_repo.get_owned(categoria, comercio_id) is None:
            return ServiceResult.failure('Categoría inválida')

        if product_id:
            product = self.product_repo.get_owned(product_id, comercio_id)
            if product is None:
                return ServiceResult.failure('Producto no encontrado', ErrorKind.NOT_FOUND)
            product.nombre = nombre
            product.descripcion = descripcion
            product.precio = precio
            product.categoria = categoria
            if imagen:
                product.imagen = imagen
            message = 'Producto actualizado'
        else:
            product = Product(comercio=comercio_id, nombre=nombre, precio=precio,
                              descripcion=descripcion, imagen=imagen, categoria=categoria)
            message = 'Producto creado'

        self.product_repo.save_product(product)
        return ServiceResult.success(message, product=product)

    def delete_product(self, comercio_id: str, product_id: str) -> ServiceResult:
        """Los pedidos existentes conservan su copia del producto."""
        with self.product_repo.transaction():
            if self.product_repo.get_owned(product_id, comercio_id) is None:
                return ServiceResult.failure('Producto no encontrado', ErrorKind.NOT_FOUND)
            self.product_repo.delete(product_id)
        return ServiceResult.success('Producto eliminado')
