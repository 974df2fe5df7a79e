# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio y sabe convertirse
# a/desde el documento que guardan los repositorios.
# ==============================================================================

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ==============================================================================
# ENUMERACIONES
# ==============================================================================

class Rol(str, Enum):
    """Roles de cuenta disponibles en el sistema."""
    CLIENTE = "cliente"
    COMERCIO = "comercio"
    DELIVERY = "delivery"
    ADMINISTRADOR = "administrador"


class EstadoPedido(str, Enum):
    """Estados de un pedido. Solo se avanza: pendiente → en proceso → completado."""
    PENDIENTE = "pendiente"
    EN_PROCESO = "en proceso"
    COMPLETADO = "completado"


class ErrorKind(str, Enum):
    """Categorías de fallo que la capa web traduce a flash + redirect."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"


# Home de cada rol (destino después del login)
ROLE_HOMES = {
    Rol.CLIENTE: '/cliente/home',
    Rol.COMERCIO: '/comercio/home',
    Rol.DELIVERY: '/delivery/home',
    Rol.ADMINISTRADOR: '/admin/dashboard',
}


def role_home(rol: Any) -> str:
    """Ruta home para un rol; login si el rol es desconocido."""
    try:
        return ROLE_HOMES[Rol(rol)]
    except ValueError:
        return '/auth/login'


# ==============================================================================
# RESULTADO DE OPERACIONES
# ==============================================================================

@dataclass
class ServiceResult:
    """
    Resultado de una operación de servicio.

    La capa web decide cómo mostrarlo (categoría del flash y redirect);
    los servicios nunca conocen request ni sesión.
    """
    ok: bool
    message: str = ''
    kind: Optional[ErrorKind] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, message: str = '', **data: Any) -> 'ServiceResult':
        return cls(ok=True, message=message, data=data)

    @classmethod
    def failure(cls, message: str, kind: ErrorKind = ErrorKind.VALIDATION, **data: Any) -> 'ServiceResult':
        return cls(ok=False, message=message, kind=kind, data=data)

    @property
    def category(self) -> str:
        """Categoría de flash para la vista."""
        if self.ok:
            return 'success'
        if self.kind in (ErrorKind.FORBIDDEN, ErrorKind.UNAVAILABLE):
            return 'warning'
        return 'error'

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


# ==============================================================================
# CUENTAS - Unión etiquetada por rol
# ==============================================================================

@dataclass
class CustomerProfile:
    """Datos propios de un cliente."""
    nombre: str = ''
    apellido: str = ''
    telefono: str = ''
    foto: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.nombre


@dataclass
class CourierProfile:
    """Datos propios de un delivery. ``disponible`` = libre para asignación."""
    nombre: str = ''
    apellido: str = ''
    telefono: str = ''
    foto: Optional[str] = None
    disponible: bool = True

    @property
    def display_name(self) -> str:
        return self.nombre


@dataclass
class MerchantProfile:
    """Datos propios de un comercio (no tiene nombre de usuario)."""
    nombre_comercio: str = ''
    telefono: str = ''
    hora_apertura: str = ''
    hora_cierre: str = ''
    tipo_comercio: Optional[str] = None
    logo: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.nombre_comercio


@dataclass
class AdminProfile:
    """Datos propios de un administrador."""
    nombre: str = ''
    apellido: str = ''
    cedula: str = ''

    @property
    def display_name(self) -> str:
        return self.nombre


Profile = Union[CustomerProfile, CourierProfile, MerchantProfile, AdminProfile]

PROFILE_TYPES = {
    Rol.CLIENTE: CustomerProfile,
    Rol.DELIVERY: CourierProfile,
    Rol.COMERCIO: MerchantProfile,
    Rol.ADMINISTRADOR: AdminProfile,
}


def profile_from_dict(rol: Rol, data: Dict[str, Any]) -> Profile:
    """Construye el perfil del rol ignorando claves que no le pertenecen."""
    cls = PROFILE_TYPES[rol]
    known = cls.__dataclass_fields__.keys()
    return cls(**{k: v for k, v in (data or {}).items() if k in known})


@dataclass
class Account:
    """
    Cuenta de usuario de cualquier rol.

    Attributes:
        correo: Email único (se guarda en minúsculas)
        password_hash: Hash de la contraseña; nunca texto plano
        rol: Etiqueta que decide el tipo de ``perfil``
        perfil: Datos específicos del rol
        nombre_usuario: Único; None para comercios
        activo: False hasta consumir el token de activación
    """
    correo: str
    password_hash: str
    rol: Rol
    perfil: Profile
    nombre_usuario: Optional[str] = None
    activo: bool = False
    token_activacion: Optional[str] = None
    token_recuperacion: Optional[str] = None
    id: Optional[str] = None
    creado: str = field(default_factory=utc_now_iso)

    def __post_init__(self):
        self.rol = Rol(self.rol)
        self.correo = (self.correo or '').strip().lower()
        if not isinstance(self.perfil, PROFILE_TYPES[self.rol]):
            raise TypeError(f'Perfil {type(self.perfil).__name__} no corresponde al rol {self.rol.value}')

    @property
    def display_name(self) -> str:
        return self.perfil.display_name or self.nombre_usuario or self.correo

    @property
    def is_courier_available(self) -> bool:
        return (self.rol == Rol.DELIVERY and self.activo
                and isinstance(self.perfil, CourierProfile) and self.perfil.disponible)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a documento para persistencia."""
        doc = {
            'correo': self.correo,
            'password': self.password_hash,
            'rol': self.rol.value,
            'perfil': asdict(self.perfil),
            'nombre_usuario': self.nombre_usuario,
            'activo': self.activo,
            'token_activacion': self.token_activacion,
            'token_recuperacion': self.token_recuperacion,
            'creado': self.creado,
        }
        if self.id:
            doc['_id'] = self.id
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Crea instancia desde documento."""
        rol = Rol(data['rol'])
        return cls(
            id=data.get('_id'),
            correo=data.get('correo', ''),
            password_hash=data.get('password', ''),
            rol=rol,
            perfil=profile_from_dict(rol, data.get('perfil', {})),
            nombre_usuario=data.get('nombre_usuario'),
            activo=bool(data.get('activo', False)),
            token_activacion=data.get('token_activacion'),
            token_recuperacion=data.get('token_recuperacion'),
            creado=data.get('creado') or utc_now_iso(),
        )


@dataclass
class SessionUser:
    """Registro mínimo que se guarda en la sesión después del login."""
    id: str
    rol: Rol
    nombre: str
    correo: str

    @property
    def home(self) -> str:
        return role_home(self.rol)

    def to_session(self) -> Dict[str, Any]:
        return {'id': self.id, 'rol': self.rol.value, 'nombre': self.nombre, 'correo': self.correo}

    @classmethod
    def from_session(cls, data: Optional[Dict[str, Any]]) -> Optional['SessionUser']:
        if not data or not data.get('id'):
            return None
        try:
            rol = Rol(data.get('rol'))
        except ValueError:
            return None
        return cls(id=data['id'], rol=rol, nombre=data.get('nombre', ''), correo=data.get('correo', ''))

    @classmethod
    def from_account(cls, account: Account) -> 'SessionUser':
        return cls(id=account.id, rol=account.rol, nombre=account.display_name, correo=account.correo)


# ==============================================================================
# CATÁLOGO
# ==============================================================================

@dataclass
class BusinessType:
    """Tipo de comercio (restaurante, farmacia, ...), administrado por admins."""
    nombre: str
    descripcion: str = ''
    icono: Optional[str] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        doc = {'nombre': self.nombre, 'descripcion': self.descripcion, 'icono': self.icono}
        if self.id:
            doc['_id'] = self.id
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BusinessType':
        return cls(
            id=data.get('_id'),
            nombre=data.get('nombre', ''),
            descripcion=data.get('descripcion', ''),
            icono=data.get('icono'),
        )


@dataclass
class Category:
    """Categoría de productos de un comercio."""
    comercio: str
    nombre: str
    descripcion: str = ''
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        doc = {'comercio': self.comercio, 'nombre': self.nombre, 'descripcion': self.descripcion}
        if self.id:
            doc['_id'] = self.id
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        return cls(
            id=data.get('_id'),
            comercio=data.get('comercio', ''),
            nombre=data.get('nombre', ''),
            descripcion=data.get('descripcion', ''),
        )


@dataclass
class Product:
    """Producto del catálogo. Pertenece a un único comercio."""
    comercio: str
    nombre: str
    precio: float
    descripcion: str = ''
    imagen: Optional[str] = None
    categoria: Optional[str] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            'comercio': self.comercio,
            'nombre': self.nombre,
            'precio': round(float(self.precio), 2),
            'descripcion': self.descripcion,
            'imagen': self.imagen,
            'categoria': self.categoria,
        }
        if self.id:
            doc['_id'] = self.id
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=data.get('_id'),
            comercio=data.get('comercio', ''),
            nombre=data.get('nombre', ''),
            precio=float(data.get('precio', 0) or 0),
            descripcion=data.get('descripcion', ''),
            imagen=data.get('imagen'),
            categoria=data.get('categoria'),
        )


# ==============================================================================
# CLIENTE: DIRECCIONES Y FAVORITOS
# ==============================================================================

@dataclass
class Address:
    """Dirección de entrega de un cliente."""
    cliente: str
    nombre: str
    descripcion: str
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        doc = {'cliente': self.cliente, 'nombre': self.nombre, 'descripcion': self.descripcion}
        if self.id:
            doc['_id'] = self.id
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Address':
        return cls(
            id=data.get('_id'),
            cliente=data.get('cliente', ''),
            nombre=data.get('nombre', ''),
            descripcion=data.get('descripcion', ''),
        )


@dataclass
class Favorite:
    """Relación cliente → comercio marcado como favorito."""
    cliente: str
    comercio: str
    creado: str = field(default_factory=utc_now_iso)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        doc = {'cliente': self.cliente, 'comercio': self.comercio, 'creado': self.creado}
        if self.id:
            doc['_id'] = self.id
        return doc


# ==============================================================================
# PEDIDOS
# ==============================================================================

@dataclass(frozen=True)
class OrderItem:
    """
    Copia de un producto tomada al crear el pedido.
    Los cambios posteriores del catálogo no la afectan.
    """
    producto_id: str
    nombre: str
    precio: float
    imagen: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'producto_id': self.producto_id,
            'nombre': self.nombre,
            'precio': round(self.precio, 2),
            'imagen': self.imagen,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderItem':
        return cls(
            producto_id=data.get('producto_id', ''),
            nombre=data.get('nombre', ''),
            precio=float(data.get('precio', 0) or 0),
            imagen=data.get('imagen'),
        )

    @classmethod
    def snapshot(cls, product: Product) -> 'OrderItem':
        return cls(producto_id=product.id, nombre=product.nombre,
                   precio=round(product.precio, 2), imagen=product.imagen)


@dataclass
class Order:
    """
    Pedido de un cliente a un comercio.

    Attributes:
        productos: Copia inmutable de los productos al momento de crear
        itbis: Porcentaje de impuesto vigente al crear
        impuesto: Monto del impuesto (subtotal * itbis / 100)
        total: subtotal + impuesto
        delivery: Id del delivery asignado (None mientras esté pendiente)
    """
    cliente: str
    comercio: str
    direccion: str
    direccion_entrega: str
    productos: List[OrderItem]
    subtotal: float
    itbis: float
    impuesto: float
    total: float
    estado: EstadoPedido = EstadoPedido.PENDIENTE
    delivery: Optional[str] = None
    fecha_pedido: str = field(default_factory=utc_now_iso)
    id: Optional[str] = None

    def __post_init__(self):
        self.estado = EstadoPedido(self.estado)

    @property
    def is_pending(self) -> bool:
        return self.estado == EstadoPedido.PENDIENTE

    @property
    def is_in_progress(self) -> bool:
        return self.estado == EstadoPedido.EN_PROCESO

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            'cliente': self.cliente,
            'comercio': self.comercio,
            'direccion': self.direccion,
            'direccion_entrega': self.direccion_entrega,
            'productos': [p.to_dict() for p in self.productos],
            'subtotal': self.subtotal,
            'itbis': self.itbis,
            'impuesto': self.impuesto,
            'total': self.total,
            'estado': self.estado.value,
            'delivery': self.delivery,
            'fecha_pedido': self.fecha_pedido,
        }
        if self.id:
            doc['_id'] = self.id
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Order':
        return cls(
            id=data.get('_id'),
            cliente=data.get('cliente', ''),
            comercio=data.get('comercio', ''),
            direccion=data.get('direccion', ''),
            direccion_entrega=data.get('direccion_entrega', ''),
            productos=[OrderItem.from_dict(p) for p in data.get('productos', [])],
            subtotal=float(data.get('subtotal', 0)),
            itbis=float(data.get('itbis', 0)),
            impuesto=float(data.get('impuesto', 0)),
            total=float(data.get('total', 0)),
            estado=data.get('estado', EstadoPedido.PENDIENTE.value),
            delivery=data.get('delivery'),
            fecha_pedido=data.get('fecha_pedido') or utc_now_iso(),
        )


# ==============================================================================
# CONFIGURACIÓN Y AUDITORÍA
# ==============================================================================

DEFAULT_ITBIS = 18.0


@dataclass
class TaxConfig:
    """Configuración global: porcentaje de ITBIS aplicado a pedidos nuevos."""
    itbis: float = DEFAULT_ITBIS

    def to_dict(self) -> Dict[str, Any]:
        return {'itbis': self.itbis}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'TaxConfig':
        if not data or data.get('itbis') is None:
            return cls()
        return cls(itbis=float(data['itbis']))


@dataclass
class AuditLog:
    """Entrada del registro de actividad."""
    tipo: str
    usuario: str
    mensaje: str
    related_id: str = ''
    details: Dict[str, Any] = field(default_factory=dict)
    ts: str = field(default_factory=utc_now_iso)
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tipo': self.tipo,
            'usuario': self.usuario,
            'mensaje': self.mensaje,
            'related_id': self.related_id,
            'details': self.details,
            'ts': self.ts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditLog':
        return cls(
            id=data.get('id'),
            tipo=data.get('tipo', ''),
            usuario=data.get('usuario', ''),
            mensaje=data.get('mensaje', ''),
            related_id=data.get('related_id', ''),
            details=data.get('details') or {},
            ts=data.get('ts') or utc_now_iso(),
        )
