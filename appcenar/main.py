import json
import uuid
from functools import wraps

import click
from flask import Flask, abort, flash, redirect, render_template, request, session, url_for

from appcenar.app_container import get_container
from appcenar.config import load_config, mail_config
from appcenar.models import ErrorKind, Rol, ServiceResult, SessionUser
from appcenar.performance_logger import configure as configure_profiling, init_profiling
from appcenar.repositories import RepositoryError
from appcenar.services import EmailDeliveryError

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════
# Todo sale del entorno (ver config.py). Los tests sobreescriben
# DATA_DIR=None para trabajar en memoria.
app.config.update(load_config())

# ═══════════════════════════════════════════════════════════════════════════
# SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Logs en LOGS_DIR cuando APPCENAR_PROFILING=true
configure_profiling(enabled=app.config['APPCENAR_PROFILING'], logs_dir=app.config['LOGS_DIR'])
init_profiling(app)


# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo hablan con servicios; los servicios con repositorios.

def services():
    return get_container(app.config['DATA_DIR'], mail_config(app.config))


# ═══════════════════════════════════════════════════════════════════════════
# SESIÓN Y HELPERS DE RESPUESTA
# ═══════════════════════════════════════════════════════════════════════════

def current_user():
    """Usuario de la sesión o None. Solo lo usan los gates y los handlers de error."""
    return SessionUser.from_session(session.get('user'))


def start_session(user: SessionUser) -> None:
    """Sesión nueva al autenticarse: no se conserva nada de la sesión anónima."""
    session.clear()
    session.permanent = not app.config['PREVIEW_MODE']
    session['user'] = user.to_session()


def flash_result(result: ServiceResult) -> None:
    if result.message:
        flash(result.message, result.category)


def safe_next(default: str) -> str:
    """Destino local enviado por el formulario, o el default."""
    target = request.values.get('next') or ''
    if target.startswith('/') and not target.startswith('//'):
        return target
    return default


def external_url(endpoint: str):
    return lambda token: url_for(endpoint, token=token, _external=True)


def cart_ids():
    """Ids del carrito: arreglo JSON en productos_ids o checkboxes 'productos'."""
    return request.form.get('productos_ids') or request.form.getlist('productos')


# ═══════════════════════════════════════════════════════════════════════════
# CSRF
# ═══════════════════════════════════════════════════════════════════════════

def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


@app.context_processor
def inject_csrf_token():
    return {'csrf_token': generate_csrf_token()}


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method == 'POST':
            token = session.get('csrf_token')
            form_token = request.form.get('csrf_token') or request.headers.get('X-CSRF-Token')
            if not token or not form_token or token != form_token:
                flash('Sesión expirada. Por favor intente de nuevo.', 'warning')
                user = current_user()
                if user is None:
                    return redirect(url_for('login'))
                return redirect(user.home)
        return f(*args, **kwargs)
    return wrapper


# ═══════════════════════════════════════════════════════════════════════════
# GATES DE SESIÓN Y ROL
# ═══════════════════════════════════════════════════════════════════════════
# El usuario resuelto se pasa al handler como argumento 'usuario'.

def role_required(*roles):
    """
    Exige sesión, cuenta activa y uno de los roles indicados.

    - Sin sesión → login con aviso
    - Cuenta desactivada o eliminada → sesión cerrada, login con aviso
    - Rol no permitido → 403
    """
    allowed = {Rol(r) for r in roles}

    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                flash('Debe iniciar sesión para continuar.', 'warning')
                return redirect(url_for('login'))
            if not services().user_service.is_active(user.id):
                session.clear()
                flash('Su cuenta está inactiva o ya no existe. Contacte al administrador.', 'warning')
                return redirect(url_for('login'))
            if allowed and user.rol not in allowed:
                abort(403)
            return f(*args, usuario=user, **kwargs)
        return wrapper
    return deco


def guest_only(f):
    """Páginas de autenticación: un usuario con sesión va a su home."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        user = current_user()
        if user is not None and not request.path.startswith(user.home):
            return redirect(user.home)
        return f(*args, **kwargs)
    return wrapper


@app.after_request
def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES
# ═══════════════════════════════════════════════════════════════════════════

@app.errorhandler(403)
def forbidden(e):
    return render_template('errors/403.html', usuario=current_user()), 403


@app.errorhandler(404)
def not_found(e):
    return render_template('errors/404.html', usuario=current_user()), 404


@app.errorhandler(500)
def internal_error(e):
    original = getattr(e, 'original_exception', None)
    detalle = None if app.config['PRODUCTION_MODE'] else repr(original or e)
    return render_template('errors/500.html', usuario=current_user(), detalle=detalle), 500


@app.errorhandler(RepositoryError)
def repository_error(e):
    app.logger.exception('Error de almacenamiento en %s %s', request.method, request.path)
    if request.method != 'POST':
        return internal_error(e)
    flash('Ocurrió un error al guardar los datos. Intente de nuevo.', 'error')
    user = current_user()
    return redirect(user.home if user else url_for('login'))


@app.errorhandler(EmailDeliveryError)
def email_error(e):
    app.logger.exception('Error enviando correo en %s', request.path)
    flash('No se pudo enviar el correo. Intente de nuevo más tarde.', 'error')
    return redirect(request.path)


# ═══════════════════════════════════════════════════════════════════════════
# INICIO
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/')
def index():
    user = current_user()
    return redirect(user.home if user else url_for('login'))


# ═══════════════════════════════════════════════════════════════════════════
# AUTENTICACIÓN - /auth/*
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/auth/login', methods=['GET', 'POST'])
@guest_only
@verify_csrf
def login():
    if request.method == 'POST':
        result = services().user_service.authenticate(
            request.form.get('usuario') or '', request.form.get('password') or '')
        if not result.ok:
            flash_result(result)
            return redirect(url_for('login'))
        user = result['user']
        start_session(user)
        flash_result(result)
        return redirect(user.home)
    return render_template('auth/login.html', usuario=None)


@app.route('/auth/register-cliente', methods=['GET', 'POST'])
@guest_only
@verify_csrf
def register_cliente():
    if request.method == 'POST':
        result = services().user_service.register_person(request.form, external_url('activar'))
        flash_result(result)
        if not result.ok:
            return redirect(url_for('register_cliente'))
        return redirect(url_for('login'))
    return render_template('auth/register_cliente.html', usuario=None)


@app.route('/auth/register-comercio', methods=['GET', 'POST'])
@guest_only
@verify_csrf
def register_comercio():
    if request.method == 'POST':
        result = services().user_service.register_merchant(request.form, external_url('activar'))
        flash_result(result)
        if not result.ok:
            return redirect(url_for('register_comercio'))
        return redirect(url_for('login'))
    tipos = services().catalog_service.list_business_types()
    return render_template('auth/register_comercio.html', usuario=None, tipos=tipos)


@app.route('/auth/activar/<token>')
def activar(token):
    result = services().user_service.activate(token)
    flash_result(result)
    return redirect(url_for('login'))


@app.route('/auth/forgot-password', methods=['GET', 'POST'])
@guest_only
@verify_csrf
def forgot_password():
    if request.method == 'POST':
        result = services().user_service.request_password_reset(
            request.form.get('usuario') or '', external_url('reset_password'))
        flash_result(result)
        if not result.ok:
            return redirect(url_for('forgot_password'))
        return redirect(url_for('login'))
    return render_template('auth/forgot_password.html', usuario=None)


@app.route('/auth/reset-password/<token>', methods=['GET', 'POST'])
@guest_only
@verify_csrf
def reset_password(token):
    user_service = services().user_service
    if request.method == 'POST':
        result = user_service.reset_password(
            token, request.form.get('password') or '', request.form.get('confirmar_password') or '')
        flash_result(result)
        if result.ok or result.kind == ErrorKind.NOT_FOUND:
            return redirect(url_for('login'))
        return redirect(url_for('reset_password', token=token))

    check = user_service.check_reset_token(token)
    if not check.ok:
        flash_result(check)
        return redirect(url_for('login'))
    return render_template('auth/reset_password.html', usuario=None, token=token)


@app.route('/auth/logout', methods=['GET', 'POST'])
def logout():
    session.clear()
    flash('Sesión cerrada.', 'info')
    return redirect(url_for('login'))


# ═══════════════════════════════════════════════════════════════════════════
# CLIENTE - /cliente/*
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/cliente/home')
@role_required(Rol.CLIENTE)
def cliente_home(usuario):
    tipos = services().catalog_service.list_business_types()
    return render_template('cliente/home.html', usuario=usuario, tipos=tipos)


@app.route('/cliente/comercios/<tipo_id>')
@role_required(Rol.CLIENTE)
def cliente_comercios(tipo_id, usuario):
    container = services()
    tipo = container.catalog_service.get_business_type(tipo_id)
    if tipo is None:
        flash('Tipo de comercio no encontrado', 'error')
        return redirect(url_for('cliente_home'))

    busqueda = (request.args.get('busqueda') or '').strip()
    comercios = container.catalog_service.list_merchants(tipo.id, busqueda)
    favoritos = set(container.favorite_service.favorite_ids(usuario.id))
    return render_template('cliente/comercios.html', usuario=usuario, tipo=tipo,
                           comercios=comercios, favoritos=favoritos, busqueda=busqueda)


@app.route('/cliente/catalogo/<comercio_id>')
@role_required(Rol.CLIENTE)
def cliente_catalogo(comercio_id, usuario):
    container = services()
    comercio = container.catalog_service.get_active_merchant(comercio_id)
    if comercio is None:
        flash('Comercio no encontrado', 'error')
        return redirect(url_for('cliente_home'))

    grupos = container.catalog_service.grouped_catalog(comercio.id)
    es_favorito = container.favorite_service.is_favorite(usuario.id, comercio.id)
    return render_template('cliente/catalogo.html', usuario=usuario, comercio=comercio,
                           grupos=grupos, es_favorito=es_favorito,
                           itbis=container.order_service.current_itbis())


@app.route('/cliente/seleccionar-direccion', methods=['POST'])
@role_required(Rol.CLIENTE)
@verify_csrf
def cliente_seleccionar_direccion(usuario):
    comercio_id = request.form.get('comercio_id')
    result = services().order_service.preview(usuario.id, comercio_id, cart_ids())
    if not result.ok:
        flash_result(result)
        if result.kind == ErrorKind.NOT_FOUND:
            return redirect(url_for('cliente_home'))
        return redirect(url_for('cliente_catalogo', comercio_id=comercio_id))
    return render_template('cliente/seleccionar_direccion.html', usuario=usuario,
                           productos_ids_json=json.dumps(result['productos_ids']), **result.data)


@app.route('/cliente/crear-pedido', methods=['POST'])
@role_required(Rol.CLIENTE)
@verify_csrf
def cliente_crear_pedido(usuario):
    comercio_id = request.form.get('comercio_id')
    result = services().order_service.create_order(
        usuario, comercio_id, cart_ids(), request.form.get('direccion_id'))
    flash_result(result)
    if result.ok:
        return redirect(url_for('cliente_pedido', pedido_id=result['order'].id))
    if services().catalog_service.get_active_merchant(comercio_id) is None:
        return redirect(url_for('cliente_home'))
    return redirect(url_for('cliente_catalogo', comercio_id=comercio_id))


@app.route('/cliente/pedidos')
@role_required(Rol.CLIENTE)
def cliente_pedidos(usuario):
    pedidos = services().order_service.list_for_customer(usuario.id)
    return render_template('cliente/pedidos.html', usuario=usuario, pedidos=pedidos)


@app.route('/cliente/pedido/<pedido_id>')
@role_required(Rol.CLIENTE)
def cliente_pedido(pedido_id, usuario):
    result = services().order_service.detail_for_customer(usuario.id, pedido_id)
    if not result.ok:
        flash_result(result)
        return redirect(url_for('cliente_pedidos'))
    return render_template('cliente/pedido.html', usuario=usuario, **result.data)


@app.route('/cliente/perfil', methods=['GET', 'POST'])
@role_required(Rol.CLIENTE)
@verify_csrf
def cliente_perfil(usuario):
    return _person_profile(usuario, 'cliente_perfil')


# ─── Direcciones ──────────────────────────────────────────────────────────

@app.route('/cliente/direcciones')
@role_required(Rol.CLIENTE)
def cliente_direcciones(usuario):
    direcciones = services().address_service.list_for(usuario.id)
    return render_template('cliente/direcciones.html', usuario=usuario, direcciones=direcciones)


@app.route('/cliente/direcciones/crear', methods=['GET', 'POST'])
@role_required(Rol.CLIENTE)
@verify_csrf
def cliente_direccion_crear(usuario):
    if request.method == 'POST':
        result = services().address_service.create(usuario.id, request.form)
        flash_result(result)
        if not result.ok:
            return redirect(url_for('cliente_direccion_crear', next=safe_next('') or None))
        return redirect(safe_next(url_for('cliente_direcciones')))
    return render_template('cliente/direccion_form.html', usuario=usuario, direccion=None,
                           next=safe_next(''))


@app.route('/cliente/direcciones/editar/<direccion_id>', methods=['GET', 'POST'])
@role_required(Rol.CLIENTE)
@verify_csrf
def cliente_direccion_editar(direccion_id, usuario):
    address_service = services().address_service
    if request.method == 'POST':
        result = address_service.update(usuario.id, direccion_id, request.form)
        flash_result(result)
        if not result.ok and result.kind != ErrorKind.NOT_FOUND:
            return redirect(url_for('cliente_direccion_editar', direccion_id=direccion_id))
        return redirect(url_for('cliente_direcciones'))

    direccion = address_service.get(usuario.id, direccion_id)
    if direccion is None:
        flash('Dirección no encontrada', 'error')
        return redirect(url_for('cliente_direcciones'))
    return render_template('cliente/direccion_form.html', usuario=usuario, direccion=direccion, next='')


@app.route('/cliente/direcciones/eliminar/<direccion_id>', methods=['GET', 'POST'])
@role_required(Rol.CLIENTE)
@verify_csrf
def cliente_direccion_eliminar(direccion_id, usuario):
    address_service = services().address_service
    if request.method == 'POST':
        flash_result(address_service.delete(usuario.id, direccion_id))
        return redirect(url_for('cliente_direcciones'))

    direccion = address_service.get(usuario.id, direccion_id)
    if direccion is None:
        flash('Dirección no encontrada', 'error')
        return redirect(url_for('cliente_direcciones'))
    return render_template('cliente/direccion_eliminar.html', usuario=usuario, direccion=direccion)


# ─── Favoritos ────────────────────────────────────────────────────────────

@app.route('/cliente/favoritos')
@role_required(Rol.CLIENTE)
def cliente_favoritos(usuario):
    comercios = services().favorite_service.list_favorites(usuario.id)
    return render_template('cliente/favoritos.html', usuario=usuario, comercios=comercios)


@app.route('/cliente/favorito/toggle/<comercio_id>', methods=['POST'])
@role_required(Rol.CLIENTE)
@verify_csrf
def cliente_favorito_toggle(comercio_id, usuario):
    result = services().favorite_service.toggle(usuario.id, comercio_id)
    flash_result(result)
    return redirect(safe_next(url_for('cliente_favoritos')))


# ═══════════════════════════════════════════════════════════════════════════
# COMERCIO - /comercio/*
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/comercio/home')
@role_required(Rol.COMERCIO)
def comercio_home(usuario):
    pedidos = services().order_service.list_for_merchant(usuario.id)
    return render_template('comercio/home.html', usuario=usuario, pedidos=pedidos)


@app.route('/comercio/pedido/<pedido_id>')
@role_required(Rol.COMERCIO)
def comercio_pedido(pedido_id, usuario):
    result = services().order_service.detail_for_merchant(usuario.id, pedido_id)
    if not result.ok:
        flash_result(result)
        return redirect(url_for('comercio_home'))
    return render_template('comercio/pedido.html', usuario=usuario, **result.data)


@app.route('/comercio/pedido/<pedido_id>/asignar-delivery', methods=['POST'])
@role_required(Rol.COMERCIO)
@verify_csrf
def comercio_asignar_delivery(pedido_id, usuario):
    result = services().order_service.assign_courier(usuario, pedido_id)
    flash_result(result)
    if result.kind == ErrorKind.NOT_FOUND:
        return redirect(url_for('comercio_home'))
    return redirect(url_for('comercio_pedido', pedido_id=pedido_id))


@app.route('/comercio/perfil', methods=['GET', 'POST'])
@role_required(Rol.COMERCIO)
@verify_csrf
def comercio_perfil(usuario):
    user_service = services().user_service
    if request.method == 'POST':
        result = user_service.update_merchant_profile(usuario.id, request.form)
        flash_result(result)
        if result.ok:
            session['user'] = result['user'].to_session()
        return redirect(url_for('comercio_perfil'))
    cuenta = user_service.get_account(usuario.id)
    tipo = services().catalog_service.get_business_type(cuenta.perfil.tipo_comercio)
    return render_template('comercio/perfil.html', usuario=usuario, cuenta=cuenta, tipo=tipo)


# ─── Categorías ───────────────────────────────────────────────────────────

@app.route('/comercio/categorias')
@role_required(Rol.COMERCIO)
def comercio_categorias(usuario):
    catalog = services().catalog_service
    return render_template('comercio/categorias.html', usuario=usuario,
                           categorias=catalog.list_categories(usuario.id),
                           conteos=catalog.category_product_counts(usuario.id))


@app.route('/comercio/categorias/crear', methods=['GET', 'POST'])
@app.route('/comercio/categorias/editar/<categoria_id>', methods=['GET', 'POST'])
@role_required(Rol.COMERCIO)
@verify_csrf
def comercio_categoria_form(usuario, categoria_id=None):
    catalog = services().catalog_service
    if request.method == 'POST':
        result = catalog.save_category(usuario.id, request.form, categoria_id)
        flash_result(result)
        if result.ok or result.kind == ErrorKind.NOT_FOUND:
            return redirect(url_for('comercio_categorias'))
        return redirect(request.path)

    categoria = None
    if categoria_id:
        categoria = catalog.get_category(usuario.id, categoria_id)
        if categoria is None:
            flash('Categoría no encontrada', 'error')
            return redirect(url_for('comercio_categorias'))
    return render_template('comercio/categoria_form.html', usuario=usuario, categoria=categoria)


@app.route('/comercio/categorias/eliminar/<categoria_id>', methods=['POST'])
@role_required(Rol.COMERCIO)
@verify_csrf
def comercio_categoria_eliminar(categoria_id, usuario):
    flash_result(services().catalog_service.delete_category(usuario.id, categoria_id))
    return redirect(url_for('comercio_categorias'))


# ─── Productos ────────────────────────────────────────────────────────────

@app.route('/comercio/productos')
@role_required(Rol.COMERCIO)
def comercio_productos(usuario):
    catalog = services().catalog_service
    categorias = {c.id: c.nombre for c in catalog.list_categories(usuario.id)}
    return render_template('comercio/productos.html', usuario=usuario,
                           productos=catalog.list_products(usuario.id), categorias=categorias)


@app.route('/comercio/productos/crear', methods=['GET', 'POST'])
@app.route('/comercio/productos/editar/<producto_id>', methods=['GET', 'POST'])
@role_required(Rol.COMERCIO)
@verify_csrf
def comercio_producto_form(usuario, producto_id=None):
    catalog = services().catalog_service
    if request.method == 'POST':
        result = catalog.save_product(usuario.id, request.form, producto_id)
        flash_result(result)
        if result.ok or result.kind == ErrorKind.NOT_FOUND:
            return redirect(url_for('comercio_productos'))
        return redirect(request.path)

    producto = None
    if producto_id:
        producto = catalog.get_product(usuario.id, producto_id)
        if producto is None:
            flash('Producto no encontrado', 'error')
            return redirect(url_for('comercio_productos'))
    return render_template('comercio/producto_form.html', usuario=usuario, producto=producto,
                           categorias=catalog.list_categories(usuario.id))


@app.route('/comercio/productos/eliminar/<producto_id>', methods=['POST'])
@role_required(Rol.COMERCIO)
@verify_csrf
def comercio_producto_eliminar(producto_id, usuario):
    flash_result(services().catalog_service.delete_product(usuario.id, producto_id))
    return redirect(url_for('comercio_productos'))


# ═══════════════════════════════════════════════════════════════════════════
# DELIVERY - /delivery/*
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/delivery/home')
@role_required(Rol.DELIVERY)
def delivery_home(usuario):
    container = services()
    pedidos = container.order_service.list_for_courier(usuario.id)
    cuenta = container.user_service.get_account(usuario.id)
    return render_template('delivery/home.html', usuario=usuario, pedidos=pedidos,
                           disponible=cuenta.is_courier_available)


@app.route('/delivery/pedido/<pedido_id>')
@role_required(Rol.DELIVERY)
def delivery_pedido(pedido_id, usuario):
    result = services().order_service.detail_for_courier(usuario.id, pedido_id)
    if not result.ok:
        flash_result(result)
        return redirect(url_for('delivery_home'))
    return render_template('delivery/pedido.html', usuario=usuario, **result.data)


@app.route('/delivery/pedido/<pedido_id>/completar', methods=['POST'])
@role_required(Rol.DELIVERY)
@verify_csrf
def delivery_completar(pedido_id, usuario):
    result = services().order_service.complete_order(usuario, pedido_id)
    flash_result(result)
    if result.kind == ErrorKind.NOT_FOUND:
        return redirect(url_for('delivery_home'))
    return redirect(url_for('delivery_pedido', pedido_id=pedido_id))


@app.route('/delivery/perfil', methods=['GET', 'POST'])
@role_required(Rol.DELIVERY)
@verify_csrf
def delivery_perfil(usuario):
    return _person_profile(usuario, 'delivery_perfil')


def _person_profile(usuario, endpoint):
    """Perfil compartido de cliente y delivery."""
    user_service = services().user_service
    if request.method == 'POST':
        result = user_service.update_person_profile(usuario.id, request.form)
        flash_result(result)
        if result.ok:
            session['user'] = result['user'].to_session()
        return redirect(url_for(endpoint))
    cuenta = user_service.get_account(usuario.id)
    return render_template('perfil.html', usuario=usuario, cuenta=cuenta, endpoint=endpoint)


# ═══════════════════════════════════════════════════════════════════════════
# ADMINISTRADOR - /admin/*
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/admin/dashboard')
@role_required(Rol.ADMINISTRADOR)
def admin_dashboard(usuario):
    stats = services().admin_service.dashboard_stats()
    return render_template('admin/dashboard.html', usuario=usuario, stats=stats)


# ─── Cuentas por rol ──────────────────────────────────────────────────────

ACCOUNT_LISTS = {
    'clientes': (Rol.CLIENTE, 'Clientes'),
    'deliveries': (Rol.DELIVERY, 'Deliveries'),
    'comercios': (Rol.COMERCIO, 'Comercios'),
}


@app.route('/admin/<any(clientes, deliveries, comercios):listado>')
@role_required(Rol.ADMINISTRADOR)
def admin_cuentas(listado, usuario):
    rol, titulo = ACCOUNT_LISTS[listado]
    cuentas = services().admin_service.list_accounts(rol)
    return render_template('admin/cuentas.html', usuario=usuario, cuentas=cuentas,
                           listado=listado, titulo=titulo, rol=rol.value)


@app.route('/admin/<any(clientes, deliveries, comercios):listado>/<cuenta_id>/toggle', methods=['POST'])
@role_required(Rol.ADMINISTRADOR)
@verify_csrf
def admin_cuenta_toggle(listado, cuenta_id, usuario):
    rol, _ = ACCOUNT_LISTS[listado]
    flash_result(services().admin_service.toggle_active(usuario, cuenta_id, rol))
    return redirect(url_for('admin_cuentas', listado=listado))


# ─── Administradores ──────────────────────────────────────────────────────

@app.route('/admin/administradores')
@role_required(Rol.ADMINISTRADOR)
def admin_administradores(usuario):
    administradores = services().admin_service.list_admins()
    return render_template('admin/administradores.html', usuario=usuario, administradores=administradores)


@app.route('/admin/administradores/crear', methods=['GET', 'POST'])
@role_required(Rol.ADMINISTRADOR)
@verify_csrf
def admin_administrador_crear(usuario):
    if request.method == 'POST':
        result = services().admin_service.create_admin(usuario, request.form)
        flash_result(result)
        if not result.ok:
            return redirect(url_for('admin_administrador_crear'))
        return redirect(url_for('admin_administradores'))
    return render_template('admin/administrador_form.html', usuario=usuario, cuenta=None)


@app.route('/admin/administradores/editar/<admin_id>', methods=['GET', 'POST'])
@role_required(Rol.ADMINISTRADOR)
@verify_csrf
def admin_administrador_editar(admin_id, usuario):
    admin_service = services().admin_service
    if request.method == 'POST':
        result = admin_service.update_admin(usuario, admin_id, request.form)
        flash_result(result)
        if not result.ok and result.kind in (ErrorKind.VALIDATION, ErrorKind.CONFLICT):
            return redirect(url_for('admin_administrador_editar', admin_id=admin_id))
        return redirect(url_for('admin_administradores'))

    if admin_id == usuario.id:
        flash('No puede editar su propia cuenta', 'warning')
        return redirect(url_for('admin_administradores'))
    cuenta = admin_service.get_admin(admin_id)
    if cuenta is None:
        flash('Administrador no encontrado', 'error')
        return redirect(url_for('admin_administradores'))
    return render_template('admin/administrador_form.html', usuario=usuario, cuenta=cuenta)


@app.route('/admin/administradores/<admin_id>/toggle', methods=['POST'])
@role_required(Rol.ADMINISTRADOR)
@verify_csrf
def admin_administrador_toggle(admin_id, usuario):
    flash_result(services().admin_service.toggle_active(usuario, admin_id, Rol.ADMINISTRADOR))
    return redirect(url_for('admin_administradores'))


# ─── Tipos de comercio ────────────────────────────────────────────────────

@app.route('/admin/tipos-comercio')
@role_required(Rol.ADMINISTRADOR)
def admin_tipos(usuario):
    catalog = services().catalog_service
    return render_template('admin/tipos.html', usuario=usuario,
                           tipos=catalog.list_business_types(), uso=catalog.business_type_usage())


@app.route('/admin/tipos-comercio/crear', methods=['GET', 'POST'])
@app.route('/admin/tipos-comercio/editar/<tipo_id>', methods=['GET', 'POST'])
@role_required(Rol.ADMINISTRADOR)
@verify_csrf
def admin_tipo_form(usuario, tipo_id=None):
    catalog = services().catalog_service
    if request.method == 'POST':
        result = catalog.save_business_type(request.form, tipo_id)
        flash_result(result)
        if result.ok or result.kind == ErrorKind.NOT_FOUND:
            return redirect(url_for('admin_tipos'))
        return redirect(request.path)

    tipo = None
    if tipo_id:
        tipo = catalog.get_business_type(tipo_id)
        if tipo is None:
            flash('Tipo de comercio no encontrado', 'error')
            return redirect(url_for('admin_tipos'))
    return render_template('admin/tipo_form.html', usuario=usuario, tipo=tipo)


@app.route('/admin/tipos-comercio/eliminar/<tipo_id>', methods=['POST'])
@role_required(Rol.ADMINISTRADOR)
@verify_csrf
def admin_tipo_eliminar(tipo_id, usuario):
    flash_result(services().catalog_service.delete_business_type(tipo_id))
    return redirect(url_for('admin_tipos'))


# ─── Configuración y actividad ────────────────────────────────────────────

@app.route('/admin/configuracion', methods=['GET', 'POST'])
@role_required(Rol.ADMINISTRADOR)
@verify_csrf
def admin_configuracion(usuario):
    admin_service = services().admin_service
    if request.method == 'POST':
        flash_result(admin_service.update_tax(usuario, request.form.get('itbis')))
        return redirect(url_for('admin_configuracion'))
    return render_template('admin/configuracion.html', usuario=usuario,
                           config=admin_service.get_tax_config())


@app.route('/admin/actividad')
@role_required(Rol.ADMINISTRADOR)
def admin_actividad(usuario):
    tipo = request.args.get('tipo') or None
    logs = services().audit_service.recent(200, tipo)
    return render_template('admin/actividad.html', usuario=usuario, logs=logs, tipo=tipo)


# ═══════════════════════════════════════════════════════════════════════════
# LÍNEA DE COMANDOS
# ═══════════════════════════════════════════════════════════════════════════

@app.cli.command('crear-admin')
@click.option('--nombre', prompt=True)
@click.option('--apellido', prompt=True)
@click.option('--cedula', prompt=True)
@click.option('--correo', prompt=True)
@click.option('--usuario', 'nombre_usuario', prompt=True)
@click.password_option()
def crear_admin(nombre, apellido, cedula, correo, nombre_usuario, password):
    """Crea el primer administrador (activo) si todavía no existe ninguno."""
    result = services().admin_service.bootstrap_admin({
        'nombre': nombre,
        'apellido': apellido,
        'cedula': cedula,
        'correo': correo,
        'nombre_usuario': nombre_usuario,
        'password': password,
        'confirmar_password': password,
    })
    if not result.ok:
        raise click.ClickException(result.message)
    click.echo(f"Administrador {result['account'].correo} creado.")


if __name__ == '__main__':
    import os
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    if not DEBUG:
        print(f"\n{'=' * 50}")
        print(f"  AppCenar ({app.config['APPCENAR_ENV']}) en http://{HOST}:{PORT}")
        if app.config['PREVIEW_MODE']:
            print("  MODO PREVIEW: los datos NO se guardan")
        print(f"{'=' * 50}\n")

    app.run(host=HOST, port=PORT, debug=DEBUG)
