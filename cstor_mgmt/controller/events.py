"""Best-effort Kubernetes event recording."""

import logging
from datetime import datetime, timezone

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..models.models import CustomResource

logger = logging.getLogger(__name__)

EVENT_NORMAL = "Normal"
EVENT_WARNING = "Warning"


class EventRecorder:
    """Posts events about custom resources; failures are only logged."""

    def __init__(self, component: str, api: client.CoreV1Api = None, host: str = ""):
        self.component = component
        self.api = api or client.CoreV1Api()
        self.host = host

    def record(self, obj: CustomResource, event_type: str, reason: str, message: str) -> None:
        namespace = obj.metadata.namespace or "default"
        now = datetime.now(timezone.utc)
        body = client.CoreV1Event(
            metadata=client.V1ObjectMeta(
                generate_name=f"{obj.name}.",
                namespace=namespace,
            ),
            involved_object=client.V1ObjectReference(
                api_version=f"{obj.KIND.group}/{obj.KIND.version}",
                kind=obj.KIND.kind,
                name=obj.name,
                namespace=obj.metadata.namespace or None,
                uid=obj.uid or None,
                resource_version=obj.metadata.resource_version or None,
            ),
            reason=reason,
            message=message,
            type=event_type,
            first_timestamp=now,
            last_timestamp=now,
            count=1,
            source=client.V1EventSource(component=self.component, host=self.host or None),
        )
        try:
            self.api.create_namespaced_event(namespace=namespace, body=body)
        except ApiException as e:
            logger.warning(f"Unable to record event {reason} for {obj.KIND.kind} {obj.key}: {e.status} {e.reason}")
        except Exception as e:
            logger.warning(f"Unable to record event {reason} for {obj.KIND.kind} {obj.key}: {str(e)}")
        logger.debug(f"Event {event_type}/{reason} for {obj.key}: {message}")

    def normal(self, obj: CustomResource, reason: str, message: str) -> None:
        self.record(obj, EVENT_NORMAL, reason, message)

    def warning(self, obj: CustomResource, reason: str, message: str) -> None:
        self.record(obj, EVENT_WARNING, reason, message)
