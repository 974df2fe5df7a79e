from datetime import datetime, timedelta, timezone

from appcenar.main import app
from appcenar.models import Address, ErrorKind, EstadoPedido, Order, Rol, TaxConfig
from appcenar.services.admin_service import parse_itbis
from appcenar.services.credentials import verify_credential

from conftest import (
    PASSWORD,
    interleave_after_first_read,
    login_as,
    make_account,
    make_product,
    session_user,
)


def admin_form(**overrides):
    data = {
        'nombre': 'Marta',
        'apellido': 'Reyes',
        'cedula': '001-1234567-8',
        'correo': 'marta@appcenar.com',
        'nombre_usuario': 'marta',
        'password': PASSWORD,
        'confirmar_password': PASSWORD,
    }
    data.update(overrides)
    return data


def stored_order(container, cliente, comercio, fecha=None, estado=EstadoPedido.PENDIENTE, delivery=None):
    order = Order(cliente=cliente.id, comercio=comercio.id, direccion='d', direccion_entrega='Calle 1',
                  productos=[], subtotal=100, itbis=18, impuesto=18, total=118,
                  estado=estado, delivery=delivery)
    if fecha:
        order.fecha_pedido = fecha.isoformat()
    return container.order_repo.create(order)


def test_parse_itbis():
    assert parse_itbis('18') == 18.0
    assert parse_itbis(' 0 ') == 0.0
    assert parse_itbis('100') == 100.0
    assert parse_itbis('100.5') is None
    assert parse_itbis('-1') is None
    assert parse_itbis('diez') is None
    assert parse_itbis(None) is None


def test_dashboard_stats(container):
    now = datetime(2024, 5, 10, 15, 0, tzinfo=timezone.utc)
    cliente = make_account(container, Rol.CLIENTE)
    make_account(container, Rol.CLIENTE, activo=False)
    comercio = make_account(container, Rol.COMERCIO)
    make_account(container, Rol.DELIVERY, activo=False)
    make_product(container, comercio, 'Pizza', 100)

    stored_order(container, cliente, comercio, fecha=now - timedelta(hours=2))
    stored_order(container, cliente, comercio, fecha=now - timedelta(days=1))

    stats = container.admin_service.dashboard_stats(now)
    assert stats['pedidos_total'] == 2
    assert stats['pedidos_hoy'] == 1
    assert stats['productos'] == 1
    assert (stats['clientes_activos'], stats['clientes_inactivos']) == (1, 1)
    assert (stats['comercios_activos'], stats['comercios_inactivos']) == (1, 0)
    assert (stats['deliveries_activos'], stats['deliveries_inactivos']) == (0, 1)


def test_account_listing_counts_orders(container):
    cliente = make_account(container, Rol.CLIENTE)
    comercio = make_account(container, Rol.COMERCIO)
    courier = make_account(container, Rol.DELIVERY)
    stored_order(container, cliente, comercio, estado=EstadoPedido.COMPLETADO, delivery=courier.id)
    stored_order(container, cliente, comercio, estado=EstadoPedido.EN_PROCESO, delivery=courier.id)

    admin = container.admin_service
    assert [row['pedidos'] for row in admin.list_accounts(Rol.CLIENTE)] == [2]
    assert [row['pedidos'] for row in admin.list_accounts(Rol.COMERCIO)] == [2]
    assert [row['pedidos'] for row in admin.list_accounts(Rol.DELIVERY)] == [1]


def test_toggle_account(container):
    admin = make_account(container, Rol.ADMINISTRADOR)
    cliente = make_account(container, Rol.CLIENTE)
    service = container.admin_service

    result = service.toggle_active(session_user(admin), cliente.id, Rol.CLIENTE)
    assert result.message == 'Cuenta desactivada exitosamente'
    assert container.user_repo.get_account(cliente.id).activo is False

    result = service.toggle_active(session_user(admin), cliente.id, Rol.CLIENTE)
    assert result.message == 'Cuenta activada exitosamente'

    assert service.toggle_active(session_user(admin), cliente.id, Rol.COMERCIO).kind == ErrorKind.NOT_FOUND


def test_admin_cannot_deactivate_or_edit_self(container):
    admin = make_account(container, Rol.ADMINISTRADOR)
    service = container.admin_service

    result = service.toggle_active(session_user(admin), admin.id, Rol.ADMINISTRADOR)
    assert result.kind == ErrorKind.FORBIDDEN
    assert result.message == 'No puede desactivar su propia cuenta'
    assert container.user_repo.get_account(admin.id).activo is True

    result = service.update_admin(session_user(admin), admin.id, admin_form())
    assert result.kind == ErrorKind.FORBIDDEN
    assert result.message == 'No puede editar su propia cuenta'


def test_create_and_edit_admin(container):
    admin = make_account(container, Rol.ADMINISTRADOR)
    service = container.admin_service

    result = service.create_admin(session_user(admin), admin_form())
    assert result.ok
    nuevo = result['account']
    assert nuevo.activo is True
    assert verify_credential(nuevo.password_hash, PASSWORD)

    duplicate = service.create_admin(session_user(admin), admin_form(correo='otra@appcenar.com'))
    assert duplicate.kind == ErrorKind.CONFLICT

    original_hash = container.user_repo.get_account(nuevo.id).password_hash
    result = service.update_admin(session_user(admin), nuevo.id,
                                  admin_form(nombre='Marta Elena', password='', confirmar_password=''))
    assert result.ok
    edited = container.user_repo.get_account(nuevo.id)
    assert edited.perfil.nombre == 'Marta Elena'
    assert edited.password_hash == original_hash

    result = service.update_admin(session_user(admin), nuevo.id,
                                  admin_form(password='otraclave', confirmar_password='otraclave'))
    assert result.ok
    assert verify_credential(container.user_repo.get_account(nuevo.id).password_hash, 'otraclave')


def test_admin_edit_keeps_concurrent_deactivation(container, monkeypatch):
    admin = make_account(container, Rol.ADMINISTRADOR)
    otro = make_account(container, Rol.ADMINISTRADOR)
    service = container.admin_service

    interleave_after_first_read(
        monkeypatch, container.user_repo, otro.id,
        lambda: service.toggle_active(session_user(admin), otro.id, Rol.ADMINISTRADOR))
    result = service.update_admin(session_user(admin), otro.id,
                                  admin_form(password='nuevaclave', confirmar_password='nuevaclave'))
    assert result.ok

    stored = container.user_repo.get_account(otro.id)
    assert stored.activo is False
    assert stored.correo == 'marta@appcenar.com'
    assert verify_credential(stored.password_hash, 'nuevaclave')


def test_bootstrap_admin_only_once(container):
    service = container.admin_service
    assert service.bootstrap_admin(admin_form()).ok
    result = service.bootstrap_admin(admin_form(correo='b@appcenar.com', nombre_usuario='b'))
    assert result.kind == ErrorKind.CONFLICT
    assert result.message == 'Ya existe un administrador'


def test_tax_update_applies_to_new_orders_only(container):
    admin = make_account(container, Rol.ADMINISTRADOR)
    cliente = make_account(container, Rol.CLIENTE)
    comercio = make_account(container, Rol.COMERCIO)
    producto = make_product(container, comercio, 'Pizza', 100)
    casa = container.address_repo.create(Address(cliente=cliente.id, nombre='Casa', descripcion='Calle 1'))

    def order():
        return container.order_service.create_order(
            session_user(cliente), comercio.id, [producto.id], casa.id)['order']

    first = order()
    assert container.admin_service.update_tax(session_user(admin), '101').message == \
        'El ITBIS debe ser un número entre 0 y 100'
    assert container.admin_service.update_tax(session_user(admin), '10').ok
    assert container.admin_service.get_tax_config() == TaxConfig(itbis=10.0)

    second = order()
    assert container.order_repo.get_order(first.id).total == 118.0
    assert second.total == 110.0


def test_admin_pages_render(client, container):
    admin = make_account(container, Rol.ADMINISTRADOR, nombre='Root')
    cliente = make_account(container, Rol.CLIENTE, correo='ana@correo.com')
    token = login_as(client, admin)

    assert client.get('/admin/dashboard').status_code == 200
    for listado in ('clientes', 'deliveries', 'comercios'):
        assert client.get(f'/admin/{listado}').status_code == 200
    assert 'ana@correo.com' in client.get('/admin/clientes').get_data(as_text=True)
    assert client.get('/admin/administradores').status_code == 200
    assert client.get('/admin/tipos-comercio').status_code == 200
    assert client.get('/admin/configuracion').status_code == 200

    r = client.post(f'/admin/clientes/{cliente.id}/toggle', data={'csrf_token': token}, follow_redirects=True)
    assert 'Cuenta desactivada exitosamente' in r.get_data(as_text=True)

    r = client.post(f'/admin/administradores/{admin.id}/toggle', data={'csrf_token': token},
                    follow_redirects=True)
    assert 'No puede desactivar su propia cuenta' in r.get_data(as_text=True)

    r = client.get(f'/admin/administradores/editar/{admin.id}', follow_redirects=True)
    assert r.request.path == '/admin/administradores'

    r = client.post('/admin/configuracion', data={'itbis': '20', 'csrf_token': token}, follow_redirects=True)
    assert 'Configuración actualizada exitosamente' in r.get_data(as_text=True)

    r = client.get('/admin/actividad?tipo=ADMIN')
    body = r.get_data(as_text=True)
    assert 'ITBIS actualizado a 20.0%' in body
    assert 'desactivada' in body


def test_business_type_routes(client, container):
    token = login_as(client, make_account(container, Rol.ADMINISTRADOR))
    r = client.post('/admin/tipos-comercio/crear', data={'nombre': 'Supermercados', 'csrf_token': token},
                    follow_redirects=True)
    assert 'Tipo de comercio creado' in r.get_data(as_text=True)
    tipo = container.catalog_service.list_business_types()[0]

    make_account(container, Rol.COMERCIO, tipo_comercio=tipo.id)
    r = client.post(f'/admin/tipos-comercio/eliminar/{tipo.id}', data={'csrf_token': token},
                    follow_redirects=True)
    assert 'No se puede eliminar' in r.get_data(as_text=True)


def test_cli_creates_first_admin(container):
    runner = app.test_cli_runner()
    args = ['crear-admin', '--nombre', 'Root', '--apellido', 'Admin', '--cedula', '001',
            '--correo', 'root@appcenar.com', '--usuario', 'root', '--password', PASSWORD]

    result = runner.invoke(args=args)
    assert result.exit_code == 0, result.output
    assert 'root@appcenar.com' in result.output
    account = container.user_repo.find_by_login('root')
    assert account.rol == Rol.ADMINISTRADOR
    assert account.activo is True

    result = runner.invoke(args=args)
    assert result.exit_code != 0
    assert 'Ya existe un administrador' in result.output
