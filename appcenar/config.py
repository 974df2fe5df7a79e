# ==============================================================================
# CONFIGURACIÓN - Variables de entorno → app.config
# ==============================================================================
# APPCENAR_ENV        development | qa | production (default: development)
# DEV_DATA_DIR        Colecciones JSON en desarrollo (default ./data/development)
# QA_DATA_DIR         Colecciones JSON en QA (default ./data/qa)
# PROD_DATA_DIR       Colecciones JSON en producción (default ./data/production)
# PREVIEW_MODE        true = sin persistencia (memoria) y sesiones no permanentes
# APPCENAR_SECRET_KEY Clave de firma de la cookie de sesión
# MAIL_*              Servidor SMTP; sin MAIL_SERVER los correos van al outbox
# APPCENAR_PROFILING  true = logs de rendimiento en LOGS_DIR
# ==============================================================================

import os
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

ENVIRONMENTS = ('development', 'qa', 'production')

DATA_DIR_VARS = {
    'development': 'DEV_DATA_DIR',
    'qa': 'QA_DATA_DIR',
    'production': 'PROD_DATA_DIR',
}

_DEFAULT_SECRET = 'appcenar_dev_secret_key_change_in_production'


def _flag(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Construye la configuración de la app a partir del entorno.

    Args:
        environ: Variables a leer (default: os.environ)

    Returns:
        Dict listo para app.config.update()
    """
    environ = os.environ if environ is None else environ

    env = (environ.get('APPCENAR_ENV') or 'development').strip().lower()
    if env not in ENVIRONMENTS:
        print(f"[ADVERTENCIA] APPCENAR_ENV='{env}' desconocido, usando development")
        env = 'development'
    production = env == 'production'
    preview = _flag(environ, 'PREVIEW_MODE')

    data_dir = None
    if not preview:
        data_dir = environ.get(DATA_DIR_VARS[env]) or os.path.join(os.getcwd(), 'data', env)

    secret_key = environ.get('APPCENAR_SECRET_KEY')
    if production and not secret_key:
        print("[ADVERTENCIA] APPCENAR_ENV=production sin APPCENAR_SECRET_KEY definida")
        print("[ADVERTENCIA] Define la variable de entorno para mayor seguridad")

    return {
        'APPCENAR_ENV': env,
        'PRODUCTION_MODE': production,
        'PREVIEW_MODE': preview,
        'DATA_DIR': data_dir,
        'SECRET_KEY': secret_key or _DEFAULT_SECRET,

        # Cookie de sesión
        'SESSION_COOKIE_HTTPONLY': True,
        'SESSION_COOKIE_SAMESITE': 'Lax',
        'SESSION_COOKIE_SECURE': production,
        'PERMANENT_SESSION_LIFETIME': timedelta(days=7),

        # Correo
        'MAIL_SERVER': environ.get('MAIL_SERVER') or None,
        'MAIL_PORT': int(environ.get('MAIL_PORT') or 587),
        'MAIL_USERNAME': environ.get('MAIL_USERNAME') or None,
        'MAIL_PASSWORD': environ.get('MAIL_PASSWORD') or None,
        'MAIL_USE_TLS': _flag(environ, 'MAIL_USE_TLS', default=True),
        'MAIL_SENDER': environ.get('MAIL_SENDER') or 'AppCenar <no-reply@appcenar.local>',

        # Profiling
        'APPCENAR_PROFILING': _flag(environ, 'APPCENAR_PROFILING'),
        'LOGS_DIR': environ.get('LOGS_DIR') or os.path.join(os.getcwd(), 'logs'),
    }


def mail_config(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Subconjunto MAIL_* para EmailService."""
    return {k: v for k, v in config.items() if k.startswith('MAIL_')}
