import json

import pytest

from appcenar.models import Address, ErrorKind, EstadoPedido, Rol, TaxConfig
from appcenar.services import compute_totals, parse_product_ids

from conftest import interleave_after_first_read, login_as, make_account, make_product, session_user


@pytest.fixture
def setup(container):
    """Comercio con dos productos (100 y 50), cliente con una dirección."""
    comercio = make_account(container, Rol.COMERCIO, nombre='Pizzería Roma')
    cliente = make_account(container, Rol.CLIENTE)
    pizza = make_product(container, comercio, 'Pizza', 100)
    refresco = make_product(container, comercio, 'Refresco', 50)
    casa = container.address_repo.create(Address(cliente=cliente.id, nombre='Casa', descripcion='Calle 1 #23'))
    return {
        'comercio': comercio,
        'cliente': cliente,
        'productos': [pizza, refresco],
        'direccion': casa,
    }


def place_order(container, setup):
    result = container.order_service.create_order(
        session_user(setup['cliente']), setup['comercio'].id,
        [p.id for p in setup['productos']], setup['direccion'].id)
    assert result.ok, result.message
    return result['order']


# ─── Cálculos ─────────────────────────────────────────────────────────────

def test_compute_totals():
    assert compute_totals([100, 50], 18) == (150.0, 27.0, 177.0)
    assert compute_totals([100, 50], 0) == (150.0, 0.0, 150.0)
    assert compute_totals([19.99, 5.01], 18) == (25.0, 4.5, 29.5)
    assert compute_totals([], 18) == (0.0, 0.0, 0.0)


@pytest.mark.parametrize('raw, expected', [
    ('["a", "b", "a"]', ['a', 'b']),
    ('a, b ,,c', ['a', 'b', 'c']),
    (['x', 'y', 'x', ''], ['x', 'y']),
    ('[1, {"x": 1}, null]', ['1']),
    ('{"a": 1}', ['{"a": 1}']),
    ('[no es json', []),
    (None, []),
    ('', []),
])
def test_parse_product_ids(raw, expected):
    assert parse_product_ids(raw) == expected


# ─── Creación ─────────────────────────────────────────────────────────────

def test_preview_uses_current_tax(container, setup):
    result = container.order_service.preview(
        setup['cliente'].id, setup['comercio'].id, [p.id for p in setup['productos']])
    assert result.ok
    assert (result['subtotal'], result['itbis'], result['impuesto'], result['total']) == (150.0, 18.0, 27.0, 177.0)
    assert [d.id for d in result['direcciones']] == [setup['direccion'].id]


def test_create_order_snapshot_and_totals(container, setup):
    order = place_order(container, setup)

    stored = container.order_repo.get_order(order.id)
    assert stored.estado == EstadoPedido.PENDIENTE
    assert stored.delivery is None
    assert (stored.subtotal, stored.itbis, stored.impuesto, stored.total) == (150.0, 18.0, 27.0, 177.0)
    assert stored.direccion_entrega == 'Calle 1 #23'
    assert [i.nombre for i in stored.productos] == ['Pizza', 'Refresco']


def test_order_is_not_affected_by_later_catalog_changes(container, setup):
    order = place_order(container, setup)
    comercio_id = setup['comercio'].id
    pizza = setup['productos'][0]

    container.catalog_service.save_product(comercio_id, {'nombre': 'Pizza Grande', 'precio': '300'}, pizza.id)
    container.catalog_service.delete_product(comercio_id, setup['productos'][1].id)
    container.admin_service.settings_repo.set_tax_config(TaxConfig(itbis=30))

    stored = container.order_repo.get_order(order.id)
    assert [(i.nombre, i.precio) for i in stored.productos] == [('Pizza', 100.0), ('Refresco', 50.0)]
    assert stored.total == 177.0


def test_zero_tax_rate(container, setup):
    container.settings_repo.set_tax_config(TaxConfig(itbis=0))
    order = place_order(container, setup)
    assert order.impuesto == 0
    assert order.total == order.subtotal == 150.0


def test_create_order_rejects_missing_references(container, setup):
    service = container.order_service
    user = session_user(setup['cliente'])
    ids = [p.id for p in setup['productos']]
    comercio_id = setup['comercio'].id
    direccion_id = setup['direccion'].id

    assert service.create_order(user, None, ids, direccion_id).message == 'Datos del pedido incompletos'
    assert service.create_order(user, 'nope', ids, direccion_id).kind == ErrorKind.NOT_FOUND
    assert service.create_order(user, comercio_id, '[]', direccion_id).message == \
        'Debe seleccionar al menos un producto'
    assert service.create_order(user, comercio_id, ids, '').message == \
        'Debe seleccionar una dirección de entrega'
    assert service.create_order(user, comercio_id, ids + ['fantasma'], direccion_id).message == \
        'Algunos productos ya no están disponibles'
    assert container.order_repo.count() == 0


def test_create_order_rejects_foreign_address_and_products(container, setup):
    otro_cliente = make_account(container, Rol.CLIENTE)
    ajena = container.address_repo.create(Address(cliente=otro_cliente.id, nombre='Otra', descripcion='Lejos'))
    otro_comercio = make_account(container, Rol.COMERCIO)
    ajeno = make_product(container, otro_comercio, 'Sushi', 80)

    service = container.order_service
    user = session_user(setup['cliente'])
    comercio_id = setup['comercio'].id

    result = service.create_order(user, comercio_id, [setup['productos'][0].id], ajena.id)
    assert result.kind == ErrorKind.NOT_FOUND
    result = service.create_order(user, comercio_id, [ajeno.id], setup['direccion'].id)
    assert result.message == 'Algunos productos ya no están disponibles'
    assert container.order_repo.count() == 0


def test_inactive_merchant_cannot_receive_orders(container, setup):
    container.user_repo.set_active(setup['comercio'].id, False)
    result = container.order_service.create_order(
        session_user(setup['cliente']), setup['comercio'].id,
        [p.id for p in setup['productos']], setup['direccion'].id)
    assert result.kind == ErrorKind.NOT_FOUND


# ─── Asignación y entrega ─────────────────────────────────────────────────

def test_assign_without_available_courier(container, setup):
    order = place_order(container, setup)
    make_account(container, Rol.DELIVERY, disponible=False)
    make_account(container, Rol.DELIVERY, activo=False)

    result = container.order_service.assign_courier(session_user(setup['comercio']), order.id)
    assert not result.ok
    assert result.kind == ErrorKind.UNAVAILABLE
    assert result.message == 'No hay delivery disponible en este momento. Intente más tarde.'
    assert container.order_repo.get_order(order.id).estado == EstadoPedido.PENDIENTE


def test_assign_and_complete(container, setup):
    order = place_order(container, setup)
    courier = make_account(container, Rol.DELIVERY, nombre='Luis')
    merchant = session_user(setup['comercio'])

    result = container.order_service.assign_courier(merchant, order.id)
    assert result.ok
    assert result.message == 'Delivery Luis asignado al pedido'
    stored = container.order_repo.get_order(order.id)
    assert stored.estado == EstadoPedido.EN_PROCESO
    assert stored.delivery == courier.id
    assert container.user_repo.get_account(courier.id).perfil.disponible is False

    again = container.order_service.assign_courier(merchant, order.id)
    assert again.message == 'El pedido ya tiene un delivery asignado'

    result = container.order_service.complete_order(session_user(courier), order.id)
    assert result.ok
    assert container.order_repo.get_order(order.id).estado == EstadoPedido.COMPLETADO
    assert container.user_repo.get_account(courier.id).perfil.disponible is True

    again = container.order_service.complete_order(session_user(courier), order.id)
    assert again.message == 'El pedido no está en proceso'


def test_busy_courier_is_not_assigned_twice(container, setup):
    first = place_order(container, setup)
    second = place_order(container, setup)
    make_account(container, Rol.DELIVERY)
    merchant = session_user(setup['comercio'])

    assert container.order_service.assign_courier(merchant, first.id).ok
    result = container.order_service.assign_courier(merchant, second.id)
    assert result.kind == ErrorKind.UNAVAILABLE


def test_only_owner_can_assign_or_complete(container, setup):
    order = place_order(container, setup)
    courier = make_account(container, Rol.DELIVERY)
    other_merchant = make_account(container, Rol.COMERCIO)
    other_courier = make_account(container, Rol.DELIVERY, disponible=False)

    result = container.order_service.assign_courier(session_user(other_merchant), order.id)
    assert result.kind == ErrorKind.NOT_FOUND
    assert container.user_repo.get_account(courier.id).perfil.disponible is True

    container.order_service.assign_courier(session_user(setup['comercio']), order.id)
    result = container.order_service.complete_order(session_user(other_courier), order.id)
    assert result.kind == ErrorKind.NOT_FOUND
    assert container.order_repo.get_order(order.id).estado == EstadoPedido.EN_PROCESO


def test_details_are_filtered_by_owner(container, setup):
    order = place_order(container, setup)
    intruso = make_account(container, Rol.CLIENTE)

    assert container.order_service.detail_for_customer(setup['cliente'].id, order.id).ok
    assert not container.order_service.detail_for_customer(intruso.id, order.id).ok
    assert container.order_service.detail_for_merchant(setup['comercio'].id, order.id).ok
    assert not container.order_service.detail_for_courier('nadie', order.id).ok


def test_profile_save_does_not_release_claimed_courier(container, setup, monkeypatch):
    first = place_order(container, setup)
    second = place_order(container, setup)
    courier = make_account(container, Rol.DELIVERY)
    merchant = session_user(setup['comercio'])

    interleave_after_first_read(monkeypatch, container.user_repo, courier.id,
                                lambda: container.order_service.assign_courier(merchant, first.id))
    result = container.user_service.update_person_profile(
        courier.id, {'nombre': 'Luis', 'apellido': 'Gómez', 'telefono': '809-000-0000'})
    assert result.ok

    stored = container.user_repo.get_account(courier.id)
    assert stored.perfil.telefono == '809-000-0000'
    assert stored.perfil.disponible is False
    assert container.order_repo.get_order(first.id).delivery == courier.id
    assert container.order_service.assign_courier(merchant, second.id).kind == ErrorKind.UNAVAILABLE


# ─── Flujo web completo ───────────────────────────────────────────────────

def test_order_flow_through_routes(client, container, setup):
    courier = make_account(container, Rol.DELIVERY, nombre='Luis')
    ids = [p.id for p in setup['productos']]

    token = login_as(client, setup['cliente'])
    r = client.post('/cliente/seleccionar-direccion',
                    data={'comercio_id': setup['comercio'].id, 'productos': ids, 'csrf_token': token})
    assert r.status_code == 200
    body = r.get_data(as_text=True)
    assert 'RD$ 177.00' in body
    assert 'Calle 1 #23' in body

    r = client.post('/cliente/crear-pedido', data={
        'comercio_id': setup['comercio'].id,
        'productos_ids': json.dumps(ids),
        'direccion_id': setup['direccion'].id,
        'csrf_token': token,
    })
    assert r.status_code == 302
    order_id = r.headers['Location'].rsplit('/', 1)[-1]
    assert container.order_repo.get_order(order_id).cliente == setup['cliente'].id

    r = client.get('/cliente/pedidos')
    assert 'RD$ 177.00' in r.get_data(as_text=True)

    token = login_as(client, setup['comercio'])
    r = client.post(f'/comercio/pedido/{order_id}/asignar-delivery', data={'csrf_token': token},
                    follow_redirects=True)
    assert 'Delivery Luis asignado al pedido' in r.get_data(as_text=True)

    token = login_as(client, courier)
    r = client.get('/delivery/home')
    assert 'Calle 1 #23' in r.get_data(as_text=True)
    r = client.post(f'/delivery/pedido/{order_id}/completar', data={'csrf_token': token},
                    follow_redirects=True)
    assert 'Pedido marcado como completado' in r.get_data(as_text=True)
    assert container.order_repo.get_order(order_id).estado == EstadoPedido.COMPLETADO


def test_customer_cannot_view_foreign_order(client, container, setup):
    order = place_order(container, setup)
    login_as(client, make_account(container, Rol.CLIENTE))
    r = client.get(f'/cliente/pedido/{order.id}', follow_redirects=True)
    assert r.request.path == '/cliente/pedidos'
    assert 'Pedido no encontrado' in r.get_data(as_text=True)


def test_create_order_route_with_bad_address_returns_to_catalog(client, container, setup):
    token = login_as(client, setup['cliente'])
    r = client.post('/cliente/crear-pedido', data={
        'comercio_id': setup['comercio'].id,
        'productos_ids': json.dumps([setup['productos'][0].id]),
        'direccion_id': 'no-existe',
        'csrf_token': token,
    })
    assert r.status_code == 302
    assert r.headers['Location'].endswith(f"/cliente/catalogo/{setup['comercio'].id}")
