# ==============================================================================
# SERVICIO DE FAVORITOS
# ==============================================================================

from typing import List

from appcenar.models import Account, ErrorKind, Rol, ServiceResult
from appcenar.repositories.interfaces import IFavoriteRepository, IUserRepository


class FavoriteService:
    """Comercios favoritos de un cliente (toggle: agregar o quitar)."""

    def __init__(self, favorite_repo: IFavoriteRepository, user_repo: IUserRepository):
        self.favorite_repo = favorite_repo
        self.user_repo = user_repo

    def toggle(self, cliente_id: str, comercio_id: str) -> ServiceResult:
        """
        Agrega o quita un comercio de favoritos.

        Returns:
            ServiceResult con data['favorito'] = estado final
        """
        merchant = self.user_repo.get_account(comercio_id)
        if merchant is None or merchant.rol != Rol.COMERCIO:
            return ServiceResult.failure('Comercio no encontrado', ErrorKind.NOT_FOUND)

        added = self.favorite_repo.toggle(cliente_id, comercio_id)
        message = 'Comercio agregado a favoritos' if added else 'Comercio eliminado de favoritos'
        return ServiceResult.success(message, favorito=added)

    def is_favorite(self, cliente_id: str, comercio_id: str) -> bool:
        return self.favorite_repo.is_favorite(cliente_id, comercio_id)

    def favorite_ids(self, cliente_id: str) -> List[str]:
        return self.favorite_repo.merchant_ids_for(cliente_id)

    def list_favorites(self, cliente_id: str) -> List[Account]:
        """Cuentas de los comercios favoritos que todavía existen."""
        merchants = []
        for comercio_id in self.favorite_repo.merchant_ids_for(cliente_id):
            merchant = self.user_repo.get_account(comercio_id)
            if merchant is not None and merchant.rol == Rol.COMERCIO:
                merchants.append(merchant)
        return merchants
