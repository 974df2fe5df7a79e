# ==============================================================================
# PROFILING DE PETICIONES Y SERVICIOS
# ==============================================================================
# Cronometra cada petición y las funciones marcadas con @profile_function.
#
#   logs/performance.log     una línea por petición
#   logs/slow_routes.log     peticiones >= 300 ms (WARNING) o >= 700 ms (CRITICAL)
#   logs/slow_functions.log  funciones de servicio por encima del umbral
#
# Se activa con APPCENAR_PROFILING=true o con configure(enabled=True).
# ==============================================================================

import logging
import os
import threading
import time
from datetime import datetime
from functools import wraps

logger = logging.getLogger(__name__)

ENABLE_PROFILING = os.environ.get('APPCENAR_PROFILING', 'false').lower() == 'true'

SLOW_MS = 300
CRITICAL_MS = 700

LOGS_DIR = os.environ.get('LOGS_DIR') or os.path.join(os.getcwd(), 'logs')

PERFORMANCE_LOG = 'performance.log'
SLOW_ROUTES_LOG = 'slow_routes.log'
SLOW_FUNCTIONS_LOG = 'slow_functions.log'

# Acción legible por regla de Flask
ACTIONS = {
    'POST /auth/login': 'Iniciar sesión',
    'GET /auth/logout': 'Cerrar sesión',
    'POST /auth/register-cliente': 'Registrar cliente/delivery',
    'POST /auth/register-comercio': 'Registrar comercio',
    'GET /auth/activar/<token>': 'Activar cuenta',
    'POST /auth/forgot-password': 'Solicitar recuperación',
    'POST /auth/reset-password/<token>': 'Restablecer contraseña',

    'GET /cliente/home': 'Ver tipos de comercio',
    'GET /cliente/comercios/<tipo_id>': 'Listar comercios',
    'GET /cliente/catalogo/<comercio_id>': 'Ver catálogo',
    'POST /cliente/seleccionar-direccion': 'Seleccionar dirección',
    'POST /cliente/crear-pedido': 'Crear pedido',
    'GET /cliente/pedidos': 'Ver mis pedidos',
    'POST /cliente/favorito/toggle/<comercio_id>': 'Marcar favorito',

    'GET /comercio/home': 'Ver pedidos del comercio',
    'POST /comercio/pedido/<pedido_id>/asignar-delivery': 'Asignar delivery',

    'GET /delivery/home': 'Ver entregas',
    'POST /delivery/pedido/<pedido_id>/completar': 'Completar entrega',

    'GET /admin/dashboard': 'Ver panel de administración',
    'POST /admin/configuracion': 'Guardar ITBIS',
    'GET /admin/actividad': 'Ver registro de actividad',
}

_stats = {}
_stats_lock = threading.Lock()
_file_lock = threading.Lock()


def configure(enabled=None, logs_dir=None):
    """Aplica APPCENAR_PROFILING y LOGS_DIR tomados de app.config."""
    global ENABLE_PROFILING, LOGS_DIR
    if enabled is not None:
        ENABLE_PROFILING = bool(enabled)
    if logs_dir:
        LOGS_DIR = logs_dir


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURA
# ═══════════════════════════════════════════════════════════════════════════

def _append(filename, line):
    stamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    try:
        with _file_lock:
            os.makedirs(LOGS_DIR, exist_ok=True)
            with open(os.path.join(LOGS_DIR, filename), 'a', encoding='utf-8') as f:
                f.write(f'{stamp} | {line}\n')
    except OSError:
        logger.warning('No se pudo escribir %s en %s', filename, LOGS_DIR, exc_info=True)


def action_for(method, rule):
    return ACTIONS.get(f'{method} {rule}', f'{method} {rule}')


# ═══════════════════════════════════════════════════════════════════════════
# RUTAS
# ═══════════════════════════════════════════════════════════════════════════

def record_request(method, path, rule, elapsed_ms, user=None):
    """
    Registra una petición terminada.

    Siempre va a performance.log; si pasa de SLOW_MS también a
    slow_routes.log con nivel WARNING o CRITICAL.
    """
    if not ENABLE_PROFILING:
        return

    who = user or 'anónimo'
    action = action_for(method, rule)
    _append(PERFORMANCE_LOG, f'{elapsed_ms:7.0f} ms | {who} | {action} | {method} {path}')

    if elapsed_ms >= CRITICAL_MS:
        level, limit = 'CRITICAL', CRITICAL_MS
    elif elapsed_ms >= SLOW_MS:
        level, limit = 'WARNING', SLOW_MS
    else:
        return
    _append(SLOW_ROUTES_LOG,
            f'[{level}] {elapsed_ms:.0f} ms (umbral {limit} ms) | {who} | {action} | {method} {path}')


def init_profiling(app):
    """Engancha el cronómetro a la app. El flag se lee en cada petición."""
    from flask import g, request, session

    @app.before_request
    def _profiling_start():
        if ENABLE_PROFILING:
            g.profiling_start = time.perf_counter()

    @app.after_request
    def _profiling_stop(response):
        start = g.pop('profiling_start', None)
        if start is not None and not request.path.startswith('/static'):
            rule = str(request.url_rule) if request.url_rule else request.path
            record_request(request.method, request.path, rule,
                           (time.perf_counter() - start) * 1000,
                           (session.get('user') or {}).get('correo'))
        return response


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES DE SERVICIO
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Mide una función de servicio.

        @profile_function
        def listar(): ...

        @profile_function(name='Crear pedido')
        def create_order(self, ...): ...
    """
    def decorator(fn):
        label = name or fn.__qualname__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not ENABLE_PROFILING:
                return fn(*args, **kwargs)
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                _observe(label, (time.perf_counter() - start) * 1000)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def _observe(label, elapsed_ms):
    with _stats_lock:
        calls, total, worst = _stats.get(label, (0, 0.0, 0.0))
        _stats[label] = (calls + 1, total + elapsed_ms, max(worst, elapsed_ms))
    if elapsed_ms >= SLOW_MS:
        level = 'CRITICAL' if elapsed_ms >= CRITICAL_MS else 'WARNING'
        _append(SLOW_FUNCTIONS_LOG, f'[{level}] {elapsed_ms:.0f} ms | {label}')


def get_function_stats():
    """{nombre: {calls, avg_time, max_time}} con tiempos en ms."""
    with _stats_lock:
        return {
            label: {
                'calls': calls,
                'avg_time': round(total / calls, 2) if calls else 0,
                'max_time': round(worst, 2),
            }
            for label, (calls, total, worst) in _stats.items()
        }


def reset_stats():
    with _stats_lock:
        _stats.clear()


__all__ = [
    'configure',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
]
