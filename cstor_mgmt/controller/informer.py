"""List/watch cache for one custom resource kind.

An :class:`Informer` keeps a local copy of every object of its kind, keyed
by ``namespace/name``, and tells registered handlers about changes as
:class:`AddEvent`, :class:`UpdateEvent` and :class:`DeleteEvent`. Every
resync period all cached objects are replayed as ``UpdateEvent(obj, obj)``.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from kubernetes import watch
from kubernetes.client.rest import ApiException

from ..kube.client import ResourceClient
from ..models.models import CustomResource

logger = logging.getLogger(__name__)

WATCH_TIMEOUT = 60  # seconds a single watch request stays open
ERROR_BACKOFF = 1  # seconds to wait after an unexpected list/watch error
HTTP_GONE = 410


@dataclass
class AddEvent:
    obj: CustomResource


@dataclass
class UpdateEvent:
    old: CustomResource
    new: CustomResource


@dataclass
class DeleteEvent:
    obj: CustomResource


Event = Union[AddEvent, UpdateEvent, DeleteEvent]
EventHandler = Callable[[Event], None]


class _WatchExpired(Exception):
    """The watch resource version is too old; a relist is needed."""


class TombstoneIndex:
    """Last known state of deleted objects, kept until their Destroy is handled."""

    def __init__(self):
        self._objects: Dict[str, CustomResource] = {}
        self._lock = threading.Lock()

    def add(self, obj: CustomResource) -> None:
        with self._lock:
            self._objects[obj.key] = obj

    def get(self, key: str) -> Optional[CustomResource]:
        with self._lock:
            return self._objects.get(key)

    def remove(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class Informer:
    """Keeps a cache of ``resource_client``'s kind in sync with the API server.

    Args:
        resource_client: access to the resource kind
        resync_period: seconds between replays of the cache; 0 disables it
    """

    def __init__(self, resource_client: ResourceClient, resync_period: float):
        self.client = resource_client
        self.kind = resource_client.kind.kind
        self.resync_period = resync_period

        self._store: Dict[str, CustomResource] = {}
        self._lock = threading.Lock()
        self._handlers: List[EventHandler] = []
        self._synced = threading.Event()
        self._resource_version = ""
        self._watch: Optional[watch.Watch] = None
        self._threads: List[threading.Thread] = []

    def add_event_handler(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def get(self, key: str) -> Optional[CustomResource]:
        with self._lock:
            return self._store.get(key)

    def list(self) -> List[CustomResource]:
        with self._lock:
            return list(self._store.values())

    def has_synced(self) -> bool:
        return self._synced.is_set()

    def wait_for_cache_sync(self, timeout: Optional[float] = None) -> bool:
        return self._synced.wait(timeout)

    def start(self, stop_event: threading.Event) -> None:
        """Start the list/watch and resync threads."""
        runner = threading.Thread(
            target=self.run, args=(stop_event,), name=f"{self.kind}-informer", daemon=True
        )
        runner.start()
        self._threads.append(runner)
        if self.resync_period > 0:
            resync = threading.Thread(
                target=self._resync_loop, args=(stop_event,), name=f"{self.kind}-resync", daemon=True
            )
            resync.start()
            self._threads.append(resync)

    def stop(self) -> None:
        if self._watch is not None:
            self._watch.stop()

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def run(self, stop_event: threading.Event) -> None:
        """List, then watch until the stream ends; repeat until stopped."""
        need_list = True
        while not stop_event.is_set():
            try:
                if need_list:
                    self.relist()
                    need_list = False
                self.watch_once(stop_event)
            except _WatchExpired:
                logger.info(f"{self.kind} watch expired, relisting")
                need_list = True
            except ApiException as e:
                if e.status == HTTP_GONE:
                    logger.info(f"{self.kind} watch expired, relisting")
                else:
                    logger.error(f"{self.kind} list/watch failed: {e.status} {e.reason}")
                need_list = True
                stop_event.wait(ERROR_BACKOFF)
            except Exception as e:
                logger.error(f"{self.kind} list/watch failed: {str(e)}")
                need_list = True
                stop_event.wait(ERROR_BACKOFF)
        logger.info(f"{self.kind} informer stopped")

    def relist(self) -> None:
        raw = self.client.list()
        objects = [obj for obj in map(self._decode, raw.get("items") or []) if obj is not None]
        resource_version = (raw.get("metadata") or {}).get("resourceVersion", "")
        self.replace(objects, resource_version)

    def replace(self, objects: List[CustomResource], resource_version: str = "") -> None:
        """Swap the cache for ``objects`` and emit the differences."""
        events: List[Event] = []
        with self._lock:
            fresh = {obj.key: obj for obj in objects}
            for key, old in self._store.items():
                if key not in fresh:
                    events.append(DeleteEvent(old))
            for key, obj in fresh.items():
                old = self._store.get(key)
                if old is None:
                    events.append(AddEvent(obj))
                else:
                    events.append(UpdateEvent(old, obj))
            self._store = fresh
            self._resource_version = resource_version

        for event in events:
            self._dispatch(event)
        if not self._synced.is_set():
            logger.info(f"{self.kind} cache synced with {len(objects)} objects")
            self._synced.set()

    def watch_once(self, stop_event: threading.Event) -> None:
        self._watch = watch.Watch()
        kwargs = self.client.list_kwargs
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version
        for event in self._watch.stream(self.client.list_func, timeout_seconds=WATCH_TIMEOUT, **kwargs):
            if stop_event.is_set():
                self._watch.stop()
                break
            self.handle_watch_event(event.get("type", ""), event.get("object"))

    def handle_watch_event(self, event_type: str, raw: Any) -> None:
        if event_type == "ERROR":
            code = (raw or {}).get("code") if isinstance(raw, dict) else None
            if code == HTTP_GONE:
                raise _WatchExpired()
            logger.error(f"{self.kind} watch error: {raw}")
            return
        if not isinstance(raw, dict):
            return

        metadata = raw.get("metadata")
        resource_version = metadata.get("resourceVersion", "") if isinstance(metadata, dict) else ""
        if event_type == "BOOKMARK":
            self._resource_version = resource_version
            return

        obj = self._decode(raw)
        if obj is None:
            if resource_version:
                self._resource_version = resource_version
            return
        with self._lock:
            old = self._store.get(obj.key)
            if event_type == "DELETED":
                self._store.pop(obj.key, None)
            else:
                self._store[obj.key] = obj
            if resource_version:
                self._resource_version = resource_version

        if event_type == "ADDED":
            self._dispatch(UpdateEvent(old, obj) if old is not None else AddEvent(obj))
        elif event_type == "MODIFIED":
            self._dispatch(UpdateEvent(old, obj) if old is not None else AddEvent(obj))
        elif event_type == "DELETED":
            self._dispatch(DeleteEvent(obj))

    def _decode(self, raw: Any) -> Optional[CustomResource]:
        """Typed object for ``raw``, or None when it cannot be parsed."""
        try:
            return self.client.resource.from_dict(raw)
        except (AttributeError, TypeError, ValueError) as e:
            metadata = raw.get("metadata") if isinstance(raw, dict) else None
            name = metadata.get("name", "?") if isinstance(metadata, dict) else "?"
            logger.error(f"Skipping malformed {self.kind} {name}: {str(e)}")
            return None

    def resync(self) -> None:
        """Replay every cached object as an update to itself."""
        for obj in self.list():
            self._dispatch(UpdateEvent(obj, obj))

    def _resync_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.resync_period):
            if self.has_synced():
                self.resync()

    def _dispatch(self, event: Event) -> None:
        for handler in self._handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"{self.kind} event handler failed for {type(event).__name__}")
