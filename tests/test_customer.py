from appcenar.models import Address, ErrorKind, Rol

from conftest import login_as, make_account


# ─── Favoritos ────────────────────────────────────────────────────────────

def test_favorite_toggle_twice(container):
    cliente = make_account(container, Rol.CLIENTE)
    comercio = make_account(container, Rol.COMERCIO)
    favorites = container.favorite_service

    result = favorites.toggle(cliente.id, comercio.id)
    assert result.ok and result['favorito'] is True
    assert favorites.favorite_ids(cliente.id) == [comercio.id]
    assert [m.id for m in favorites.list_favorites(cliente.id)] == [comercio.id]

    result = favorites.toggle(cliente.id, comercio.id)
    assert result.ok and result['favorito'] is False
    assert favorites.favorite_ids(cliente.id) == []


def test_favorite_requires_merchant(container):
    cliente = make_account(container, Rol.CLIENTE)
    otro_cliente = make_account(container, Rol.CLIENTE)
    result = container.favorite_service.toggle(cliente.id, otro_cliente.id)
    assert result.kind == ErrorKind.NOT_FOUND
    assert container.favorite_service.favorite_ids(cliente.id) == []


def test_favorites_are_per_customer(container):
    ana = make_account(container, Rol.CLIENTE)
    luis = make_account(container, Rol.CLIENTE)
    comercio = make_account(container, Rol.COMERCIO)
    container.favorite_service.toggle(ana.id, comercio.id)
    assert container.favorite_service.favorite_ids(luis.id) == []


def test_favorite_toggle_route_honours_next(client, container):
    cliente = make_account(container, Rol.CLIENTE)
    comercio = make_account(container, Rol.COMERCIO, nombre='Café Central')
    token = login_as(client, cliente)

    r = client.post(f'/cliente/favorito/toggle/{comercio.id}',
                    data={'csrf_token': token, 'next': f'/cliente/catalogo/{comercio.id}'})
    assert r.headers['Location'].endswith(f'/cliente/catalogo/{comercio.id}')

    r = client.post(f'/cliente/favorito/toggle/{comercio.id}',
                    data={'csrf_token': token, 'next': 'https://evil.example/'})
    assert r.headers['Location'].endswith('/cliente/favoritos')

    container.favorite_service.toggle(cliente.id, comercio.id)
    r = client.get('/cliente/favoritos')
    assert 'Café Central' in r.get_data(as_text=True)


def test_catalog_shows_favorite_state(client, container):
    cliente = make_account(container, Rol.CLIENTE)
    comercio = make_account(container, Rol.COMERCIO)
    login_as(client, cliente)

    assert container.favorite_service.is_favorite(cliente.id, comercio.id) is False
    assert 'Agregar a favoritos' in client.get(f'/cliente/catalogo/{comercio.id}').get_data(as_text=True)

    container.favorite_service.toggle(cliente.id, comercio.id)
    assert container.favorite_service.is_favorite(cliente.id, comercio.id) is True
    assert 'Quitar de favoritos' in client.get(f'/cliente/catalogo/{comercio.id}').get_data(as_text=True)


# ─── Direcciones ──────────────────────────────────────────────────────────

def test_address_validation(container):
    cliente = make_account(container, Rol.CLIENTE)
    result = container.address_service.create(cliente.id, {'nombre': 'Casa', 'descripcion': '  '})
    assert result.message == 'Nombre y descripción son obligatorios'
    assert container.address_service.list_for(cliente.id) == []


def test_address_ownership(container):
    ana = make_account(container, Rol.CLIENTE)
    luis = make_account(container, Rol.CLIENTE)
    service = container.address_service
    casa = service.create(ana.id, {'nombre': 'Casa', 'descripcion': 'Calle 1'})['address']

    assert service.get(luis.id, casa.id) is None
    assert service.update(luis.id, casa.id, {'nombre': 'Mía', 'descripcion': 'Otra'}).kind == ErrorKind.NOT_FOUND
    assert service.delete(luis.id, casa.id).kind == ErrorKind.NOT_FOUND
    assert service.get(ana.id, casa.id).nombre == 'Casa'

    assert service.update(ana.id, casa.id, {'nombre': 'Hogar', 'descripcion': 'Calle 2'}).ok
    assert service.get(ana.id, casa.id).descripcion == 'Calle 2'
    assert service.delete(ana.id, casa.id).ok
    assert service.list_for(ana.id) == []


def test_address_routes(client, container):
    ana = make_account(container, Rol.CLIENTE)
    luis = make_account(container, Rol.CLIENTE)
    ajena = container.address_repo.create(Address(cliente=luis.id, nombre='Trabajo', descripcion='Av. Luperón'))
    token = login_as(client, ana)

    r = client.post('/cliente/direcciones/crear',
                    data={'nombre': 'Casa', 'descripcion': 'Calle 1', 'csrf_token': token,
                          'next': '/cliente/catalogo/abc'})
    assert r.headers['Location'].endswith('/cliente/catalogo/abc')
    assert len(container.address_repo.list_for(ana.id)) == 1

    r = client.get(f'/cliente/direcciones/editar/{ajena.id}', follow_redirects=True)
    assert r.request.path == '/cliente/direcciones'
    assert 'Dirección no encontrada' in r.get_data(as_text=True)

    r = client.post(f'/cliente/direcciones/eliminar/{ajena.id}', data={'csrf_token': token},
                    follow_redirects=True)
    assert 'Dirección no encontrada' in r.get_data(as_text=True)
    assert container.address_repo.get_owned(ajena.id, luis.id) is not None
