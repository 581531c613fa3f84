"""
Runtime configuration.

Values come from environment variables, optionally loaded from a ``.env``
file in the working directory.
"""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_float_env(key: str, default: float) -> float:
    """Get a float value from environment variable or use default."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            pass
    return default


def _get_int_env(key: str, default: int) -> int:
    """Get an int value from environment variable or use default."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def _get_bool_env(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class Settings:
    """Engine and API settings."""
    # Directory holding <port>.tdat files
    data_path: str = './data'
    # 'big' or 'little'; the existing NZ tide tables are little-endian
    byte_order: str = 'big'
    allow_partial: bool = True
    loader_threads: int = 2
    # Seconds an API request waits for a port to finish loading
    load_timeout: float = 5.0
    timezone: str = 'Pacific/Auckland'
    default_port: str = 'Auckland'
    log_level: str = 'INFO'


def get_settings() -> Settings:
    """Build settings from the current environment."""
    byte_order = os.environ.get('NZTIDES_BYTE_ORDER', 'big').strip().lower()
    if byte_order not in ('big', 'little'):
        byte_order = 'big'

    return Settings(
        data_path=os.environ.get('NZTIDES_DATA_PATH', './data'),
        byte_order=byte_order,
        allow_partial=_get_bool_env('NZTIDES_ALLOW_PARTIAL', True),
        loader_threads=max(1, _get_int_env('NZTIDES_LOADER_THREADS', 2)),
        load_timeout=_get_float_env('NZTIDES_LOAD_TIMEOUT', 5.0),
        timezone=os.environ.get('NZTIDES_TIMEZONE', 'Pacific/Auckland'),
        default_port=os.environ.get('NZTIDES_DEFAULT_PORT', 'Auckland'),
        log_level=os.environ.get('NZTIDES_LOG_LEVEL', 'INFO').upper(),
    )
