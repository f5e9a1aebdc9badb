"""
Configuration settings for the cStor node controllers.
"""
import os


def _env_number(name, default, cast=int):
    """Numeric setting from the environment; malformed values keep the default.

    ``load_controller_config`` re-reads these and rejects bad values.
    """
    try:
        return cast(os.getenv(name, default))
    except ValueError:
        return cast(default)


# Custom resource API
OPENEBS_API_GROUP = os.getenv('OPENEBS_API_GROUP', 'openebs.io')
OPENEBS_API_VERSION = os.getenv('OPENEBS_API_VERSION', 'v1alpha1')

# Sidecar identity
CSTOR_VOLUME_ID_ENV = 'OPENEBS_IO_CSTOR_VOLUME_ID'

# Informer resync
RESYNC_INTERVAL_ENV = 'RESYNC_INTERVAL'
DEFAULT_RESYNC_INTERVAL = 30  # seconds

# Worker configuration
DEFAULT_WORKERS = _env_number('CSTOR_WORKERS', '2')
CACHE_SYNC_TIMEOUT = _env_number('CACHE_SYNC_TIMEOUT', '300')  # seconds

# Tool binaries
POOL_OPERATOR = os.getenv('POOL_OPERATOR', 'zpool')
VOLUME_REPLICA_OPERATOR = os.getenv('VOLUME_REPLICA_OPERATOR', 'zfs')

# Pool / replica timing
POOL_NAME_HANDLER_INTERVAL = 5  # seconds between pool name lookups
POOL_NAME_ATTEMPTS = _env_number('POOL_NAME_ATTEMPTS', '30')
INITIAL_ZREPL_RETRY_INTERVAL = 3  # seconds
CONTINUOUS_ZREPL_RETRY_INTERVAL = 1  # seconds
CRD_RETRY_INTERVAL = 10  # seconds

# istgt configuration
ISTGT_CONF_PATH = os.getenv('ISTGT_CONF_PATH', '/usr/local/etc/istgt/istgt.conf')
ISTGT_CTL_SOCK = os.getenv('ISTGT_CTL_SOCK', '/var/run/istgt_ctl_sock')
ISTGT_SOCK_TIMEOUT = _env_number('ISTGT_SOCK_TIMEOUT', '5', float)
ISCSI_RETRY_INTERVAL = 3  # seconds
CSTOR_STORAGE_DIR = os.getenv('CSTOR_STORAGE_DIR', '/tmp/cstor')

# Logging / metrics
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
METRICS_PORT = _env_number('METRICS_PORT', '0')
