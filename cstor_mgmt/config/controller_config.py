"""Controller configuration management."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from . import base_config
from ..utils.errors import FatalError


@dataclass
class ControllerConfig:
    kubeconfig: Optional[str]
    workers: int
    resync_interval: int
    cache_sync_timeout: int
    pool_name_attempts: int
    volume_id: str
    istgt_conf_path: str
    istgt_ctl_sock: str
    storage_dir: str
    metrics_port: int
    log_level: str


def resync_interval() -> int:
    """Return the informer resync interval in seconds.

    Falls back to the default when RESYNC_INTERVAL is absent, zero or not a number.
    """
    raw = os.getenv(base_config.RESYNC_INTERVAL_ENV, '')
    try:
        value = int(raw)
    except ValueError:
        return base_config.DEFAULT_RESYNC_INTERVAL
    if value <= 0:
        return base_config.DEFAULT_RESYNC_INTERVAL
    return value


def env_int(name: str, default: int, minimum: int = 1) -> int:
    """Integer setting from the environment.

    Raises FatalError when the value is not a number or below ``minimum``.
    """
    raw = os.getenv(name, '').strip()
    if not raw:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError:
            raise FatalError(f"{name} must be an integer, got {raw!r}")
    return check_minimum(name, value, minimum)


def check_minimum(name: str, value: int, minimum: int) -> int:
    if value < minimum:
        raise FatalError(f"{name} must be at least {minimum}, got {value}")
    return value


def load_controller_config(kubeconfig: Optional[str] = None,
                           workers: Optional[int] = None,
                           metrics_port: Optional[int] = None,
                           log_level: Optional[str] = None) -> ControllerConfig:
    """Load controller configuration from environment variables.

    Explicit arguments (usually from the command line) take precedence.
    """
    load_dotenv()

    return ControllerConfig(
        kubeconfig=kubeconfig or os.getenv('KUBECONFIG') or None,
        workers=(check_minimum('workers', workers, 1) if workers is not None
                 else env_int('CSTOR_WORKERS', base_config.DEFAULT_WORKERS)),
        resync_interval=resync_interval(),
        cache_sync_timeout=env_int('CACHE_SYNC_TIMEOUT', base_config.CACHE_SYNC_TIMEOUT),
        pool_name_attempts=env_int('POOL_NAME_ATTEMPTS', base_config.POOL_NAME_ATTEMPTS),
        volume_id=os.getenv(base_config.CSTOR_VOLUME_ID_ENV, ''),
        istgt_conf_path=os.getenv('ISTGT_CONF_PATH', base_config.ISTGT_CONF_PATH),
        istgt_ctl_sock=os.getenv('ISTGT_CTL_SOCK', base_config.ISTGT_CTL_SOCK),
        storage_dir=os.getenv('CSTOR_STORAGE_DIR', base_config.CSTOR_STORAGE_DIR),
        metrics_port=(check_minimum('metrics port', metrics_port, 0) if metrics_port is not None
                      else env_int('METRICS_PORT', base_config.METRICS_PORT, minimum=0)),
        log_level=(log_level or os.getenv('LOG_LEVEL', base_config.LOG_LEVEL)).upper(),
    )
