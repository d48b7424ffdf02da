import re
import logging

import bcrypt

logger = logging.getLogger(__name__)

# Política de contraseñas: mínimo 8 caracteres, una mayúscula, una minúscula y un número
PASSWORD_MIN_LENGTH = 8
_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Debe contener al menos una mayúscula"),
    (re.compile(r"[a-z]"), "Debe contener al menos una minúscula"),
    (re.compile(r"[0-9]"), "Debe contener al menos un número"),
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifica si una contraseña plana coincide con una contraseña hasheada usando bcrypt.

    Args:
        plain_password: La contraseña en texto plano.
        hashed_password: La contraseña hasheada almacenada (como string).

    Returns:
        True si las contraseñas coinciden, False en caso contrario.
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError as e:
        # bcrypt.checkpw lanza ValueError si el hash almacenado no es válido
        logger.error(f"Error verificando password (posiblemente hash inválido): {e}")
        return False


def get_password_hash(password: str) -> str:
    """
    Genera el hash de una contraseña usando bcrypt.

    Args:
        password: La contraseña en texto plano a hashear.

    Returns:
        El hash de la contraseña como string.
    """
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def validate_password_strength(password: str) -> str:
    """
    Valida la política de contraseñas y devuelve la contraseña sin cambios.
    Lanza ValueError con el primer incumplimiento encontrado (para validadores Pydantic).
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"La contraseña debe tener al menos {PASSWORD_MIN_LENGTH} caracteres")
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(password):
            raise ValueError(message)
    return password
