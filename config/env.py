import os

from django.core.exceptions import ImproperlyConfigured


def get_env(var_name: str, default=None, required: bool = False):
    value = os.environ.get(var_name, default)
    if required and value in (None, ""):
        raise ImproperlyConfigured(f"Missing required environment variable: {var_name}")
    return value


def get_env_int(var_name: str, default: int) -> int:
    value = get_env(var_name, default)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ImproperlyConfigured(f"{var_name} must be an integer, got {value!r}") from e


def get_env_float(var_name: str, default: float) -> float:
    value = get_env(var_name, default)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ImproperlyConfigured(f"{var_name} must be a number, got {value!r}") from e
