"""Thin typed access to the openebs.io custom resources."""

import logging
from typing import Any, Dict, Optional, Tuple, Type

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..models.models import CustomResource, Phase
from ..utils.errors import FatalError

logger = logging.getLogger(__name__)


def load_kube_config(kubeconfig: Optional[str] = None) -> None:
    """Load client configuration from ``kubeconfig`` or the pod's service account.

    Raises:
        FatalError: no usable configuration was found
    """
    try:
        if kubeconfig:
            config.load_kube_config(config_file=kubeconfig)
            return
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config()
    except (config.ConfigException, OSError) as e:
        raise FatalError(f"Unable to load kubernetes configuration: {str(e)}") from e


def split_key(key: str) -> Tuple[str, str]:
    """Split a ``namespace/name`` key; cluster scoped keys have no namespace."""
    parts = key.split("/")
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) == 2 and parts[1]:
        return parts[0], parts[1]
    raise ValueError(f"invalid resource key: {key}")


def is_not_found(error: Exception) -> bool:
    return isinstance(error, ApiException) and error.status == 404


class ResourceClient:
    """Reads and status-updates one kind of custom resource on the API server."""

    def __init__(self, resource: Type[CustomResource], api: Optional[client.CustomObjectsApi] = None):
        self.resource = resource
        self.kind = resource.KIND
        self.api = api or client.CustomObjectsApi()

    @property
    def _coords(self) -> Dict[str, str]:
        return {"group": self.kind.group, "version": self.kind.version, "plural": self.kind.plural}

    def list(self, **kwargs) -> Dict[str, Any]:
        """Raw list across all namespaces; keyword arguments go to the API call."""
        return self.api.list_cluster_custom_object(**self._coords, **kwargs)

    @property
    def list_func(self):
        """Callable suitable for ``kubernetes.watch.Watch().stream``."""
        return self.api.list_cluster_custom_object

    @property
    def list_kwargs(self) -> Dict[str, str]:
        return dict(self._coords)

    def get_raw(self, key: str) -> Dict[str, Any]:
        namespace, name = split_key(key)
        if self.kind.namespaced:
            return self.api.get_namespaced_custom_object(
                namespace=namespace or "default", name=name, **self._coords
            )
        return self.api.get_cluster_custom_object(name=name, **self._coords)

    def get(self, key: str) -> CustomResource:
        """Fetch the current object; raises ApiException (404 when gone)."""
        return self.resource.from_dict(self.get_raw(key))

    def update_phase(self, key: str, phase: Phase) -> None:
        """Read-modify-write ``.status.phase``.

        :data:`Phase.IGNORE` suppresses the write. An object that has
        disappeared meanwhile is not an error.
        """
        if phase == Phase.IGNORE:
            return
        try:
            body = self.get_raw(key)
            status = body.get("status") or {}
            status["phase"] = phase.value
            body["status"] = status
            namespace, name = split_key(key)
            if self.kind.namespaced:
                self.api.replace_namespaced_custom_object_status(
                    namespace=namespace or "default", name=name, body=body, **self._coords
                )
            else:
                self.api.replace_cluster_custom_object_status(name=name, body=body, **self._coords)
        except ApiException as e:
            if e.status == 404:
                logger.info(f"{self.kind.kind} {key} no longer exists, skipping status {phase.value}")
                return
            raise
        logger.info(f"{self.kind.kind} {key} status set to {phase.value}")
