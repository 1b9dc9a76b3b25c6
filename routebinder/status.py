"""
Asynchronous status writer.
Reconcilers enqueue `Update` items, a single worker re-fetches the live object, applies the mutator
and writes the status subresource, retrying on optimistic concurrency conflicts
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import backoff

from routebinder.config import settings
from routebinder.kubernetes import KubernetesObject, NamespacedName
from routebinder.kubernetes.exceptions import KubernetesError, NotFoundError, ConflictError
from routebinder.utils import primitive

logger = logging.getLogger(__name__)


class _NoOp:
    """Returned by a mutator when the live object needs no status write"""

    def __repr__(self):
        return "NO_OP"


NO_OP = _NoOp()

Mutator = Callable[[KubernetesObject], object]


class UnsupportedObjectError(Exception):
    """Mutator received an object of a kind it was not built for"""


@dataclass
class Update:
    """Status write request, the mutator is applied to the freshly fetched object"""

    namespaced_name: NamespacedName
    resource: type[KubernetesObject]
    mutator: Mutator

    def __str__(self):
        return f"{self.resource.KIND} {self.namespaced_name}"


class Updater(Protocol):
    """Anything status updates can be sent to"""

    def update(self, update: Update):
        """Enqueues status update"""


class StatusClient(Protocol):
    """Part of the cluster client used by the status pipeline"""

    def get(self, kind, name: str, namespace: Optional[str] = None): ...

    def update_status(self, obj: KubernetesObject): ...


def _without_transition_times(value):
    if isinstance(value, dict):
        return {key: _without_transition_times(item) for key, item in value.items() if key != "lastTransitionTime"}
    if isinstance(value, list):
        return [_without_transition_times(item) for item in value]
    return value


def status_equal(first: dict, second: dict) -> bool:
    """Compares two statuses, ignoring lastTransitionTime of all conditions"""
    return _without_transition_times(primitive(first or {})) == _without_transition_times(primitive(second or {}))


def replace_status(kind: type[KubernetesObject], status: dict) -> Mutator:
    """
    Returns mutator which sets the status of the live object to a copy of the given status.
    The status is copied now, so later changes of the caller's dictionary are not written
    """
    snapshot = primitive(status)

    def _mutate(obj: KubernetesObject):
        if not isinstance(obj, kind):
            raise UnsupportedObjectError(f"unsupported object type {type(obj).__name__}, expected {kind.__name__}")
        obj.model["status"] = primitive(snapshot)
        return obj

    return _mutate


class UpdateHandler:
    """
    Owns the bounded queue of status updates and the single worker thread draining it.
    Stopping the worker does not drain items which are still queued
    """

    def __init__(self, client: StatusClient, queue_size: int = None, poll_interval: float = None):
        self.client = client
        self.queue: queue.Queue = queue.Queue(maxsize=queue_size or settings["status"]["queue_size"])
        self.poll_interval = poll_interval or settings["status"]["poll_interval"]
        self.started = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self, stop: threading.Event):
        """Starts the worker in a daemon thread, it runs until stop is set"""
        self._thread = threading.Thread(target=self.run, args=(stop,), name="status-updater", daemon=True)
        self._thread.start()

    def run(self, stop: threading.Event):
        """Processes queued updates until stop is set"""
        logger.info("Starting status update handler")
        self.started.set()
        while not stop.is_set():
            try:
                update = self.queue.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            try:
                self.process(update)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Unexpected error while updating status of %s", update)
            finally:
                self.queue.task_done()
        logger.info("Status update handler stopped")

    def process(self, update: Update):
        """Applies a single update, conflicts are retried and other cluster errors are dropped"""
        try:
            self._update_with_retry(update)
        except NotFoundError:
            logger.debug("%s no longer exists, skipping status update", update)
        except ConflictError as e:
            logger.error("Giving up status update of %s after conflicts: %s", update, e)
        except KubernetesError as e:
            logger.error("Failed to update status of %s: %s", update, e)
        except UnsupportedObjectError:
            logger.exception("Status mutator failed for %s", update)

    def _update_with_retry(self, update: Update):
        retry = settings["status"]["retry"]

        @backoff.on_exception(
            backoff.expo,
            ConflictError,
            max_tries=retry["max_tries"],
            base=retry["base"],
            factor=retry["factor"],
            jitter=None,
        )
        def _apply():
            self.apply(update)

        _apply()

    def apply(self, update: Update):
        """Fetches the live object and writes the status returned by the mutator"""
        name = update.namespaced_name
        live = self.client.get(update.resource, name.name, name.namespace or None)
        mutated = update.mutator(live.copy())
        if mutated is None or mutated is NO_OP:
            logger.debug("Mutator of %s returned no-op", update)
            return
        if status_equal(live.status, mutated.status):
            logger.debug("Status of %s did not change", update)
            return

        if live.uid:
            mutated.model.metadata["uid"] = live.uid
        self.client.update_status(mutated)
        logger.info("Updated status of %s", update)

    def writer(self) -> "UpdateWriter":
        """Returns Updater which enqueues into this handler"""
        return UpdateWriter(self)

    def join(self):
        """Blocks until every queued update was processed"""
        self.queue.join()


class UpdateWriter:
    """Enqueues updates, waiting for the handler to start first"""

    def __init__(self, handler: UpdateHandler):
        self.handler = handler

    def update(self, update: Update):
        """Blocks until the handler is started and the queue has room"""
        self.handler.started.wait()
        self.handler.queue.put(update)
