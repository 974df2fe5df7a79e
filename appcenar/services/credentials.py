# ==============================================================================
# CREDENCIALES - Hash de contraseñas y tokens de un solo uso
# ==============================================================================
# REGLA: la contraseña se hashea UNA sola vez, aquí, en cada punto que escribe
# una credencial (registro, reset, alta/edición de administrador).
# Los repositorios guardan lo que reciben y jamás vuelven a hashear, así
# guardar una cuenta por otro motivo nunca altera el hash.
# ==============================================================================

import secrets

from werkzeug.security import check_password_hash, generate_password_hash

from appcenar.models import Account

# Prefijos de los métodos de werkzeug (scrypt por defecto, pbkdf2 legacy)
HASH_PREFIXES = ('scrypt:', 'pbkdf2:')


def is_password_hashed(value: str) -> bool:
    """True si el valor ya tiene formato de hash de werkzeug."""
    return bool(value) and value.startswith(HASH_PREFIXES)


def hash_credential(plaintext: str) -> str:
    """Hash salado y lento de una contraseña en texto plano."""
    if not plaintext:
        raise ValueError('Contraseña requerida')
    return generate_password_hash(plaintext)


def set_password(account: Account, plaintext: str) -> Account:
    """Reemplaza la credencial de la cuenta por el hash de ``plaintext``."""
    account.password_hash = hash_credential(plaintext)
    return account


def verify_credential(stored_hash: str, plaintext: str) -> bool:
    """
    Compara la contraseña ingresada contra el hash guardado.

    Nunca compara texto plano: un valor sin formato de hash se rechaza.
    """
    if not is_password_hashed(stored_hash) or plaintext is None:
        return False
    return check_password_hash(stored_hash, plaintext)


def new_token() -> str:
    """Token aleatorio criptográfico (32 bytes en hex)."""
    return secrets.token_hex(32)
