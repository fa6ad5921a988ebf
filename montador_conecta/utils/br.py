import re
from typing import Optional


def only_digits(s: Optional[str]) -> str:
    return re.sub(r"\D+", "", s or "")


def normalize_cpf(value: Optional[str]) -> Optional[str]:
    """Digits-only CPF; empty input becomes None so the unique column accepts many blanks.

    Raises ValueError when something was given but it is not 11 digits.
    Check digits are not validated.
    """
    if value is None or not str(value).strip():
        return None
    digits = only_digits(value)
    if len(digits) != 11:
        raise ValueError("CPF deve conter 11 dígitos")
    return digits


def normalize_cnpj(value: Optional[str]) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    digits = only_digits(value)
    if len(digits) != 14:
        raise ValueError("CNPJ deve conter 14 dígitos")
    return digits


def validate_password_strength(password: str) -> Optional[str]:
    """Return an error message when the password is weak, else None."""
    if len(password) < 8:
        return "A senha deve ter pelo menos 8 caracteres"
    if not re.search(r"[A-Z]", password):
        return "A senha deve conter pelo menos uma letra maiúscula"
    if not re.search(r"[a-z]", password):
        return "A senha deve conter pelo menos uma letra minúscula"
    if not re.search(r"[0-9]", password):
        return "A senha deve conter pelo menos um número"
    return None
