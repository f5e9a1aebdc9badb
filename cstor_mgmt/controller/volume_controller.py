"""Reconciles the CStorVolume served by this target pod."""

import logging

from ..models.models import CStorVolume, CustomResource, Phase, QueueOperation
from ..utils.errors import CStorError, InvalidSpecError
from ..volume.volume import VolumeTarget, validate_volume
from .base import BaseController
from .common import EventReason

logger = logging.getLogger(__name__)


class VolumeController(BaseController):
    """Renders istgt.conf for the one volume whose UID matches ``volume_id``."""

    name = "cstorvolume"

    def __init__(self, informer, resource_client, target: VolumeTarget, volume_id: str,
                 recorder=None, queue=None, metrics=None):
        super().__init__(informer, resource_client, recorder=recorder, queue=queue, metrics=metrics)
        self.target = target
        self.volume_id = volume_id

    def admit(self, obj: CustomResource) -> bool:
        if obj.uid != self.volume_id:
            logger.debug(f"Ignoring volume {obj.key} with uid {obj.uid}, serving {self.volume_id}")
            return False
        return True

    def reconcile(self, operation: QueueOperation, volume: CStorVolume) -> None:
        if operation == QueueOperation.ADD:
            phase = self.apply(volume, invalid_phase=Phase.OFFLINE)
        elif operation == QueueOperation.MODIFY:
            phase = self.apply(volume, invalid_phase=Phase.INVALID)
        else:
            # target teardown belongs to the pod lifecycle
            phase = Phase.IGNORE
        self.set_phase(volume, phase)

    def apply(self, volume: CStorVolume, invalid_phase: Phase) -> Phase:
        """Validate, write the config and refresh the daemon.

        Failures record ``invalid_phase`` or ``Failed`` before re-raising.
        """
        try:
            validate_volume(volume)
        except InvalidSpecError as e:
            logger.error(f"Invalid volume {volume.key}: {e.message}")
            self.record_warning(volume, EventReason.FAIL_VALIDATE, e.message)
            self.set_phase(volume, invalid_phase)
            raise

        try:
            self.target.create(volume)
        except CStorError as e:
            self.record_warning(volume, EventReason.FAIL_UPDATE, e.message)
            self.set_phase(volume, Phase.FAILED)
            raise
        self.record_normal(volume, EventReason.UPDATED, f"Target configured for {volume.spec.volume_name}")
        return Phase.ONLINE
