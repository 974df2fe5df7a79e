import re

import pytest

from appcenar.app_container import AppContainer
from appcenar.main import app, services
from appcenar.models import (
    Account,
    AdminProfile,
    BusinessType,
    CourierProfile,
    CustomerProfile,
    MerchantProfile,
    Product,
    Rol,
    SessionUser,
)
from appcenar.services import set_password

PASSWORD = 'secreto1'
CSRF_RE = re.compile(r'name="csrf_token" value="([0-9a-f]+)"')


@pytest.fixture
def container():
    """Contenedor con todas las colecciones en memoria."""
    AppContainer.reset_instance()
    app.config.update(TESTING=True, DATA_DIR=None, MAIL_SERVER=None, PREVIEW_MODE=False)
    c = services()
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def client(container):
    with app.test_client() as c:
        yield c


# ─── Fábricas ─────────────────────────────────────────────────────────────

def make_account(container, rol, activo=True, password=PASSWORD, **fields):
    rol = Rol(rol)
    if rol == Rol.CLIENTE:
        perfil = CustomerProfile(nombre=fields.pop('nombre', 'Ana'), apellido='Pérez', telefono='809-555-0101')
    elif rol == Rol.DELIVERY:
        perfil = CourierProfile(nombre=fields.pop('nombre', 'Luis'), apellido='Gómez', telefono='809-555-0102',
                                disponible=fields.pop('disponible', True))
    elif rol == Rol.COMERCIO:
        perfil = MerchantProfile(nombre_comercio=fields.pop('nombre', 'La Esquina'), telefono='809-555-0103',
                                 hora_apertura='08:00', hora_cierre='22:00',
                                 tipo_comercio=fields.pop('tipo_comercio', None))
    else:
        perfil = AdminProfile(nombre=fields.pop('nombre', 'Root'), apellido='Admin', cedula='001-0000000-1')

    suffix = container.user_repo.new_id()[:8]
    account = Account(
        correo=fields.pop('correo', f'{rol.value}-{suffix}@correo.com'),
        password_hash='',
        rol=rol,
        perfil=perfil,
        nombre_usuario=None if rol == Rol.COMERCIO else fields.pop('nombre_usuario', f'{rol.value}{suffix}'),
        activo=activo,
        **fields,
    )
    set_password(account, password)
    return container.user_repo.create_account(account)


def make_business_type(container, nombre='Restaurantes'):
    return container.business_type_repo.save_type(BusinessType(nombre=nombre, descripcion=f'{nombre} locales'))


def make_product(container, comercio, nombre, precio, categoria=None):
    return container.product_repo.save_product(
        Product(comercio=comercio.id, nombre=nombre, precio=precio, categoria=categoria))


def session_user(account):
    return SessionUser.from_account(account)


# ─── Sesión y CSRF ────────────────────────────────────────────────────────

def csrf_from(response):
    match = CSRF_RE.search(response.get_data(as_text=True))
    assert match, 'no csrf token in page'
    return match.group(1)


def login_as(client, account):
    """Sesión iniciada sin pasar por el formulario. Retorna el token CSRF."""
    token = 'a1b2c3d4e5f6'
    with client.session_transaction() as sess:
        sess['user'] = session_user(account).to_session()
        sess['csrf_token'] = token
    return token


def login_form(client, usuario, password=PASSWORD):
    token = csrf_from(client.get('/auth/login'))
    return client.post('/auth/login', data={'usuario': usuario, 'password': password, 'csrf_token': token},
                       follow_redirects=True)


def interleave_after_first_read(monkeypatch, repo, account_id, action):
    """
    Ejecuta ``action`` justo después de la primera lectura de la cuenta.

    Simula otra petición que modifica la cuenta entre la lectura y el guardado
    de la petición en curso.
    """
    original = repo.get_account
    pending = [action]

    def get_account(requested_id):
        account = original(requested_id)
        if requested_id == account_id and pending:
            pending.pop()()
        return account

    monkeypatch.setattr(repo, 'get_account', get_account)
