# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener instancias de repositorios y servicios.
#   - Cada instancia se crea una sola vez (lazy loading)
#   - Los tests llaman reset_instance() para empezar con colecciones vacías
#   - data_dir=None → todas las colecciones en memoria (modo preview)
#
# Para cambiar de almacenamiento basta con instanciar otras clases que
# cumplan las interfaces de repositories/interfaces.py en este archivo.
# ==============================================================================

from typing import Any, Dict, Optional

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS
# ═══════════════════════════════════════════════════════════════════════════════
from appcenar.repositories import (
    AddressRepository,
    AuditRepository,
    BusinessTypeRepository,
    CategoryRepository,
    FavoriteRepository,
    OrderRepository,
    ProductRepository,
    SettingsRepository,
    UserRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS
# ═══════════════════════════════════════════════════════════════════════════════
from appcenar.services import (
    AddressService,
    AdminService,
    AuditService,
    CatalogService,
    EmailService,
    FavoriteService,
    OrderService,
    UserService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación (singleton).

    Uso:
        container = AppContainer(data_dir='/srv/appcenar/data')
        order_service = container.order_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, data_dir: Optional[str] = None, mail_config: Optional[Dict[str, Any]] = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, data_dir: Optional[str] = None, mail_config: Optional[Dict[str, Any]] = None):
        """
        Args:
            data_dir: Directorio de las colecciones JSON; None = memoria
            mail_config: Claves MAIL_* de la configuración
        """
        if self._initialized:
            return

        self._data_dir = data_dir
        self._mail_config = dict(mail_config or {})
        self._instances: Dict[str, Any] = {}
        self._initialized = True

    @property
    def data_dir(self) -> Optional[str]:
        return self._data_dir

    def _get(self, name: str, factory):
        if name not in self._instances:
            self._instances[name] = factory()
        return self._instances[name]

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def user_repo(self) -> UserRepository:
        return self._get('user_repo', lambda: UserRepository(self._data_dir))

    @property
    def business_type_repo(self) -> BusinessTypeRepository:
        return self._get('business_type_repo', lambda: BusinessTypeRepository(self._data_dir))

    @property
    def category_repo(self) -> CategoryRepository:
        return self._get('category_repo', lambda: CategoryRepository(self._data_dir))

    @property
    def product_repo(self) -> ProductRepository:
        return self._get('product_repo', lambda: ProductRepository(self._data_dir))

    @property
    def address_repo(self) -> AddressRepository:
        return self._get('address_repo', lambda: AddressRepository(self._data_dir))

    @property
    def favorite_repo(self) -> FavoriteRepository:
        return self._get('favorite_repo', lambda: FavoriteRepository(self._data_dir))

    @property
    def order_repo(self) -> OrderRepository:
        return self._get('order_repo', lambda: OrderRepository(self._data_dir))

    @property
    def settings_repo(self) -> SettingsRepository:
        return self._get('settings_repo', lambda: SettingsRepository(self._data_dir))

    @property
    def audit_repo(self) -> AuditRepository:
        return self._get('audit_repo', lambda: AuditRepository(self._data_dir))

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def email_service(self) -> EmailService:
        return self._get('email_service', lambda: EmailService(self._mail_config))

    @property
    def audit_service(self) -> AuditService:
        return self._get('audit_service', lambda: AuditService(self.audit_repo))

    @property
    def user_service(self) -> UserService:
        return self._get('user_service', lambda: UserService(
            self.user_repo,
            self.business_type_repo,
            self.email_service,
            self.audit_service,
        ))

    @property
    def catalog_service(self) -> CatalogService:
        return self._get('catalog_service', lambda: CatalogService(
            self.business_type_repo,
            self.category_repo,
            self.product_repo,
            self.user_repo,
        ))

    @property
    def address_service(self) -> AddressService:
        return self._get('address_service', lambda: AddressService(self.address_repo))

    @property
    def favorite_service(self) -> FavoriteService:
        return self._get('favorite_service', lambda: FavoriteService(self.favorite_repo, self.user_repo))

    @property
    def order_service(self) -> OrderService:
        return self._get('order_service', lambda: OrderService(
            self.order_repo,
            self.product_repo,
            self.address_repo,
            self.user_repo,
            self.settings_repo,
            self.audit_service,
        ))

    @property
    def admin_service(self) -> AdminService:
        return self._get('admin_service', lambda: AdminService(
            self.user_repo,
            self.order_repo,
            self.product_repo,
            self.settings_repo,
            self.audit_service,
        ))

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """Descarta todas las instancias (en memoria: datos vacíos)."""
        self._instances = {}

    @classmethod
    def get_instance(cls, data_dir: Optional[str] = None,
                     mail_config: Optional[Dict[str, Any]] = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton.

        Los argumentos solo se usan en la primera llamada.
        """
        if cls._instance is None:
            return cls(data_dir, mail_config)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(data_dir: Optional[str] = None, mail_config: Optional[Dict[str, Any]] = None) -> AppContainer:
    """Contenedor de dependencias global."""
    return AppContainer.get_instance(data_dir, mail_config)
