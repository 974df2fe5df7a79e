# ==============================================================================
# REPOSITORIOS DE CATÁLOGO
# ==============================================================================
# tipos_comercio.json → tipos de comercio (administrados por admins)
# categorias.json     → categorías de cada comercio
# productos.json      → productos de cada comercio
# ==============================================================================

import os
from typing import List, Optional

from appcenar.models import BusinessType, Category, Product
from appcenar.repositories.base import DocumentRepository


def _path(data_dir: Optional[str], filename: str) -> Optional[str]:
    return os.path.join(data_dir, filename) if data_dir else None


class BusinessTypeRepository(DocumentRepository):
    """Tipos de comercio."""

    def __init__(self, data_dir: Optional[str] = None):
        super().__init__(_path(data_dir, 'tipos_comercio.json'))

    def get_type(self, type_id: Optional[str]) -> Optional[BusinessType]:
        doc = self.get_by_id(type_id)
        return BusinessType.from_dict(doc) if doc else None

    def list_types(self) -> List[BusinessType]:
        types = [BusinessType.from_dict(d) for d in self.get_all().values()]
        return sorted(types, key=lambda t: t.nombre.lower())

    def save_type(self, business_type: BusinessType) -> BusinessType:
        if business_type.id:
            self.replace(business_type.id, business_type.to_dict())
        else:
            business_type.id = self.insert(business_type.to_dict())
        return business_type


class CategoryRepository(DocumentRepository):
    """Categorías de productos; cada una pertenece a un comercio."""

    def __init__(self, data_dir: Optional[str] = None):
        super().__init__(_path(data_dir, 'categorias.json'))

    def get_owned(self, category_id: Optional[str], comercio_id: str) -> Optional[Category]:
        """Categoría solo si pertenece al comercio indicado."""
        doc = self.get_by_id(category_id)
        if not doc or doc.get('comercio') != comercio_id:
            return None
        return Category.from_dict(doc)

    def list_for(self, comercio_id: str) -> List[Category]:
        categories = [Category.from_dict(d) for d in self.find_all_by(comercio=comercio_id)]
        return sorted(categories, key=lambda c: c.nombre.lower())

    def save_category(self, category: Category) -> Category:
        if category.id:
            self.replace(category.id, category.to_dict())
        else:
            category.id = self.insert(category.to_dict())
        return category


class ProductRepository(DocumentRepository):
    """Productos; cada uno pertenece a un comercio y opcionalmente a una categoría."""

    def __init__(self, data_dir: Optional[str] = None):
        super().__init__(_path(data_dir, 'productos.json'))

    def get_product(self, product_id: Optional[str]) -> Optional[Product]:
        doc = self.get_by_id(product_id)
        return Product.from_dict(doc) if doc else None

    def get_owned(self, product_id: Optional[str], comercio_id: str) -> Optional[Product]:
        product = self.get_product(product_id)
        if product is None or product.comercio != comercio_id:
            return None
        return product

    def get_products(self, product_ids: List[str]) -> List[Product]:
        """Productos existentes para los ids dados, en el orden recibido."""
        return [Product.from_dict(d) for d in self.get_many(product_ids)]

    def list_for(self, comercio_id: str) -> List[Product]:
        products = [Product.from_dict(d) for d in self.find_all_by(comercio=comercio_id)]
        return sorted(products, key=lambda p: p.nombre.lower())

    def clear_category(self, category_id: str) -> int:
        """Quita la categoría de sus productos (al eliminarla). Retorna cuántos cambió."""
        with self._file_lock:
            data = self.get_all()
            changed = 0
            for doc in data.values():
                if doc.get('categoria') == category_id:
                    doc['categoria'] = None
                    changed += 1
            if changed:
                self._write_raw(data)
            return changed

    def save_product(self, product: Product) -> Product:
        if product.id:
            self.replace(product.id, product.to_dict())
        else:
            product.id = self.insert(product.to_dict())
        return product
