"""
istgt target configuration synthesis and daemon control.

The rendered file must match the daemon's configuration grammar exactly;
only the per-volume fields are substituted.
"""

import logging
import os
import threading

from ..config import base_config
from ..models.models import CStorVolume
from ..utils.errors import InvalidSpecError, ToolFailureError, TransientIOError
from ..utils.file_ops import atomic_write
from ..utils.runner import Runner
from ..utils.unix_sock import REFRESH_CMD, STATUS_CMD, UnixSock, reply_is_error

logger = logging.getLogger(__name__)

NODE_BASE = "iqn.2017-08.OpenEBS.cstor"
ISTGT_CONF_MODE = 0o644

ISTGT_CONF_TEMPLATE = """# Global section
[Global]
  NodeBase "{node_base}"
  PidFile "/var/run/istgt.pid"
  AuthFile "/usr/local/etc/istgt/auth.conf"
  MediaDirectory "/mnt"
  Timeout 60
  NopInInterval 20
  MaxR2T 16
  DiscoveryAuthMethod None
  DiscoveryAuthGroup None
  MaxSessions 32
  MaxConnections 4
  FirstBurstLength 262144
  MaxBurstLength 1048576
  MaxRecvDataSegmentLength 262144
  MaxOutstandingR2T 16
  DefaultTime2Wait 2
  DefaultTime2Retain 20

# UnitControl section
[UnitControl]
  AuthMethod None
  AuthGroup None
  Portal UC1 {target_ip}:3261
  Netmask {target_ip}/8

# PortalGroup section
[PortalGroup1]
  Portal DA1 {target_ip}:3260

# InitiatorGroup section
[InitiatorGroup1]
  InitiatorName "ALL"
  Netmask "ALL"

[InitiatorGroup2]
  InitiatorName "None"
  Netmask "None"

# LogicalUnit section
[LogicalUnit2]
  TargetName {volume_name}
  TargetAlias nicknamefor-{volume_name}
  Mapping PortalGroup1 InitiatorGroup1
  AuthMethod None
  AuthGroup None
  UseDigest Auto
  ReadOnly No
  ReplicationFactor {replication_factor}
  ConsistencyFactor {consistency_factor}
  UnitType Disk
  UnitOnline Yes
  BlockLength 512
  QueueDepth 32
  Luworkers 1
  UnitInquiry "OpenEBS" "iscsi" "0" "4059aab98f093c5d95207f7af09d1413"
  PhysRecordLength 4096
  LUN0 Storage {storage_path} {capacity} 32k
  LUN0 Option Unmap Disable
  LUN0 Option WZero Disable
  LUN0 Option ATS Disable
  LUN0 Option XCOPY Disable
"""


def validate_volume(volume: CStorVolume) -> None:
    """Check a CStorVolume before anything is written for it.

    Raises:
        InvalidSpecError: a required field is empty or the replication
            and consistency factors are inconsistent
    """
    spec = volume.spec
    if not volume.uid:
        raise InvalidSpecError("Invalid volume resource")
    if not spec.target_ip:
        raise InvalidSpecError("targetIP cannot be empty")
    if not spec.volume_name:
        raise InvalidSpecError("volumeName cannot be empty")
    if not spec.capacity:
        raise InvalidSpecError("capacity cannot be empty")
    if spec.replication_factor == 0:
        raise InvalidSpecError("replicationFactor cannot be zero")
    if spec.consistency_factor == 0:
        raise InvalidSpecError("consistencyFactor cannot be zero")
    if spec.replication_factor < spec.consistency_factor:
        raise InvalidSpecError("replicationFactor cannot be less than consistencyFactor")


def backing_file_path(volume: CStorVolume, storage_dir: str = base_config.CSTOR_STORAGE_DIR) -> str:
    return f"{storage_dir.rstrip('/')}/{volume.spec.volume_name}"


def render_istgt_conf(volume: CStorVolume, storage_dir: str = base_config.CSTOR_STORAGE_DIR) -> bytes:
    """Render the complete istgt.conf for ``volume``."""
    spec = volume.spec
    conf = ISTGT_CONF_TEMPLATE.format(
        node_base=NODE_BASE,
        target_ip=spec.target_ip,
        volume_name=spec.volume_name,
        replication_factor=spec.replication_factor,
        consistency_factor=spec.consistency_factor,
        storage_path=backing_file_path(volume, storage_dir),
        capacity=spec.capacity,
    )
    return conf.encode('utf-8')


class VolumeTarget:
    """Maintains the istgt configuration and backing store on this node."""

    def __init__(self, runner: Runner,
                 conf_path: str = base_config.ISTGT_CONF_PATH,
                 sock_path: str = base_config.ISTGT_CTL_SOCK,
                 storage_dir: str = base_config.CSTOR_STORAGE_DIR,
                 sock_timeout: float = base_config.ISTGT_SOCK_TIMEOUT):
        self.runner = runner
        self.conf_path = conf_path
        self.storage_dir = storage_dir
        self.unix_sock = UnixSock(sock_path, timeout=sock_timeout)

    def ensure_backing_file(self, volume: CStorVolume) -> None:
        """Create the sparse file backing LUN0 at the requested capacity."""
        path = backing_file_path(volume, self.storage_dir)
        for program, args in (("touch", (path,)),
                              ("truncate", ("-s", volume.spec.capacity, path))):
            result = self.runner.run(program, *args)
            if not result.ok:
                logger.error(f"Unable to prepare backing file {path}: {result.output.strip()}")
                raise ToolFailureError(result.argv, result.returncode, result.output)

    def write_config(self, data: bytes) -> None:
        atomic_write(self.conf_path, data, ISTGT_CONF_MODE)
        logger.info(f"Done writing {os.path.basename(self.conf_path)}")

    def refresh(self) -> None:
        """Ask istgt to re-read its configuration.

        Socket errors are logged only; the daemon is restarted independently.
        """
        try:
            reply = self.unix_sock.send_command(REFRESH_CMD)
        except TransientIOError as e:
            logger.warning(f"Failed to refresh iscsi service with new configuration: {e.message}")
            return
        if reply_is_error(reply):
            logger.warning(f"istgt refused refresh: {reply}")

    def create(self, volume: CStorVolume) -> None:
        """Provision the target for ``volume``: backing file, config, refresh."""
        self.ensure_backing_file(volume)
        self.write_config(render_istgt_conf(volume, self.storage_dir))
        self.refresh()
        logger.info(f"Creating iscsi volume {volume.spec.volume_name} successful")

    def wait_for_daemon(self, stop_event: threading.Event,
                        interval: float = base_config.ISCSI_RETRY_INTERVAL) -> bool:
        """Block until istgt answers STATUS.

        Returns False if ``stop_event`` was set first.
        """
        while not stop_event.is_set():
            try:
                reply = self.unix_sock.send_command(STATUS_CMD)
                if not reply_is_error(reply):
                    logger.info("istgt is ready")
                    return True
                logger.warning(f"istgt status returned error: {reply}")
            except TransientIOError as e:
                logger.info(f"Waiting for istgt to start: {e.message}")
            stop_event.wait(interval)
        return False
