import pytest

from appcenar.main import app
from appcenar.models import Rol
from appcenar.repositories import RepositoryError
from appcenar.services import EmailDeliveryError

from conftest import PASSWORD, csrf_from, login_as, make_account


@pytest.mark.parametrize('path', [
    '/cliente/home',
    '/comercio/home',
    '/delivery/home',
    '/admin/dashboard',
    '/cliente/pedidos',
])
def test_anonymous_is_sent_to_login(client, path):
    r = client.get(path)
    assert r.status_code == 302
    assert r.headers['Location'].endswith('/auth/login')

    r = client.get(path, follow_redirects=True)
    assert 'Debe iniciar sesión para continuar.' in r.get_data(as_text=True)


@pytest.mark.parametrize('rol, path', [
    (Rol.CLIENTE, '/admin/dashboard'),
    (Rol.CLIENTE, '/comercio/home'),
    (Rol.COMERCIO, '/cliente/home'),
    (Rol.DELIVERY, '/admin/clientes'),
    (Rol.ADMINISTRADOR, '/delivery/home'),
])
def test_wrong_role_is_forbidden(client, container, rol, path):
    login_as(client, make_account(container, rol))
    r = client.get(path)
    assert r.status_code == 403


def test_deactivated_account_is_logged_out(client, container):
    account = make_account(container, Rol.CLIENTE)
    login_as(client, account)
    assert client.get('/cliente/home').status_code == 200

    container.user_repo.set_active(account.id, False)
    r = client.get('/cliente/home', follow_redirects=True)
    assert r.request.path == '/auth/login'
    assert 'Su cuenta está inactiva o ya no existe' in r.get_data(as_text=True)
    with client.session_transaction() as sess:
        assert 'user' not in sess


def test_deleted_account_is_logged_out(client, container):
    account = make_account(container, Rol.COMERCIO)
    login_as(client, account)
    container.user_repo.delete(account.id)
    r = client.get('/comercio/home')
    assert r.status_code == 302
    assert r.headers['Location'].endswith('/auth/login')


def test_authenticated_user_cannot_see_auth_pages(client, container):
    login_as(client, make_account(container, Rol.DELIVERY))
    for path in ('/auth/login', '/auth/register-cliente', '/auth/register-comercio', '/auth/forgot-password'):
        r = client.get(path)
        assert r.status_code == 302
        assert r.headers['Location'].endswith('/delivery/home')


def test_root_redirects_by_session(client, container):
    assert client.get('/').headers['Location'].endswith('/auth/login')
    login_as(client, make_account(container, Rol.ADMINISTRADOR))
    assert client.get('/').headers['Location'].endswith('/admin/dashboard')


def test_post_without_csrf_token_is_rejected(client, container):
    account = make_account(container, Rol.CLIENTE)
    login_as(client, account)
    r = client.post('/cliente/direcciones/crear', data={'nombre': 'Casa', 'descripcion': 'Calle 1'},
                    follow_redirects=True)
    assert 'Sesión expirada' in r.get_data(as_text=True)
    assert container.address_repo.list_for(account.id) == []


def test_post_with_wrong_csrf_token_is_rejected(client, container):
    account = make_account(container, Rol.CLIENTE)
    login_as(client, account)
    r = client.post('/cliente/direcciones/crear',
                    data={'nombre': 'Casa', 'descripcion': 'Calle 1', 'csrf_token': 'otro'})
    assert r.status_code == 302
    assert r.headers['Location'].endswith('/cliente/home')
    assert container.address_repo.list_for(account.id) == []


def test_csrf_header_is_accepted(client, container):
    account = make_account(container, Rol.CLIENTE)
    token = login_as(client, account)
    client.post('/cliente/direcciones/crear', data={'nombre': 'Casa', 'descripcion': 'Calle 1'},
                headers={'X-CSRF-Token': token})
    assert len(container.address_repo.list_for(account.id)) == 1


def test_security_headers(client):
    r = client.get('/auth/login')
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_unknown_page_renders_404(client):
    r = client.get('/no-existe')
    assert r.status_code == 404
    assert 'no encontrada' in r.get_data(as_text=True).lower()


# ─── Manejadores de error ─────────────────────────────────────────────────

def fail_with(exc):
    def raiser(*args, **kwargs):
        raise exc
    return raiser


@pytest.mark.parametrize('production, shows_detail', [(True, False), (False, True)])
def test_500_page_hides_detail_in_production(client, container, monkeypatch, production, shows_detail):
    monkeypatch.setitem(app.config, 'PROPAGATE_EXCEPTIONS', False)
    monkeypatch.setitem(app.config, 'PRODUCTION_MODE', production)
    monkeypatch.setattr(container.catalog_service, 'list_business_types',
                        fail_with(RuntimeError('detalle-secreto')))
    login_as(client, make_account(container, Rol.CLIENTE))

    r = client.get('/cliente/home')
    body = r.get_data(as_text=True)
    assert r.status_code == 500
    assert 'Error interno' in body
    assert ('detalle-secreto' in body) is shows_detail


def test_storage_error_on_post_flashes_and_redirects(client, container, monkeypatch):
    monkeypatch.setattr(container.address_service, 'create', fail_with(RepositoryError('disco lleno')))
    token = login_as(client, make_account(container, Rol.CLIENTE))

    r = client.post('/cliente/direcciones/crear',
                    data={'nombre': 'Casa', 'descripcion': 'Calle 1', 'csrf_token': token})
    assert r.status_code == 302
    assert r.headers['Location'].endswith('/cliente/home')

    r = client.get(r.headers['Location'])
    body = r.get_data(as_text=True)
    assert 'Ocurrió un error al guardar los datos' in body
    assert 'disco lleno' not in body


def test_storage_error_on_get_renders_500(client, container, monkeypatch):
    monkeypatch.setitem(app.config, 'PRODUCTION_MODE', True)
    monkeypatch.setattr(container.order_service, 'list_for_customer', fail_with(RepositoryError('disco lleno')))
    login_as(client, make_account(container, Rol.CLIENTE))

    r = client.get('/cliente/pedidos')
    assert r.status_code == 500
    assert 'disco lleno' not in r.get_data(as_text=True)


def test_mail_failure_on_registration_returns_to_form(client, container, monkeypatch):
    monkeypatch.setattr(container.user_service.email_service, 'send',
                        fail_with(EmailDeliveryError('SMTP caído')))
    token = csrf_from(client.get('/auth/register-cliente'))

    r = client.post('/auth/register-cliente', data={
        'csrf_token': token, 'rol': 'cliente', 'nombre': 'Ana', 'apellido': 'Pérez',
        'telefono': '809-555-0101', 'correo': 'ana@correo.com', 'nombre_usuario': 'ana',
        'password': PASSWORD, 'confirmar_password': PASSWORD,
    })
    assert r.status_code == 302
    assert r.headers['Location'].endswith('/auth/register-cliente')
    assert container.user_repo.find_by_login('ana') is None

    r = client.get(r.headers['Location'])
    assert 'No se pudo enviar el correo' in r.get_data(as_text=True)
