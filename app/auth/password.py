import re

from werkzeug.security import check_password_hash, generate_password_hash

_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def password_problem(password: str, prefix: str = "A senha") -> str | None:
    """Retorna a mensagem de erro da regra de senha, ou None se a senha for aceita."""
    if not password or len(password) < 8:
        return f"{prefix} deve ter no mínimo 8 caracteres"
    if not _PASSWORD_RULE.match(password):
        return f"{prefix} deve conter pelo menos uma letra minúscula, uma maiúscula e um número"
    return None
