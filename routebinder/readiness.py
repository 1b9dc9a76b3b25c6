"""
Readiness barrier, holds back full synchronization to the data plane until every object which existed
at startup was reconciled at least once
"""

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from routebinder.config import settings
from routebinder.kubernetes import GroupVersionKind, KubernetesObject, NamespacedName

logger = logging.getLogger(__name__)

# How often blocked waiters check cancellation
POLL_INTERVAL = 0.1


class ReadinessState(enum.Enum):
    """States of the barrier, Ready is terminal"""

    INITIALIZING = "Initializing"
    STARTED = "Started"
    READY = "Ready"


class ListClient(Protocol):
    """Part of the cluster client used for the initial listing"""

    def list(self, kind, namespace: Optional[str] = None, labels: dict[str, str] = None) -> list: ...


@dataclass
class GVKConfig:
    """Kinds to track, filter selects which of the listed objects are waited for"""

    kinds: list[type[KubernetesObject]]
    filter: Optional[Callable[[KubernetesObject], bool]] = field(default=None)


class ReadinessManager:
    """Tracks pending objects per kind, created once by the process and shared by all reconcilers"""

    def __init__(self, client: ListClient):
        self.client = client
        self.configs: list[GVKConfig] = []
        self.pending: dict[GroupVersionKind, set[NamespacedName]] = {}
        self._lock = threading.Lock()
        self._started = threading.Event()
        self._ready = threading.Event()

    def register_gvk(self, *configs: GVKConfig):
        """Registers kinds to track, must be called before start"""
        if self._started.is_set():
            raise RuntimeError("Kinds cannot be registered after the readiness manager was started")
        with self._lock:
            self.configs.extend(configs)

    @property
    def state(self) -> ReadinessState:
        """Returns current state"""
        if self._ready.is_set():
            return ReadinessState.READY
        if self._started.is_set():
            return ReadinessState.STARTED
        return ReadinessState.INITIALIZING

    def start(self):
        """Lists every object of the registered kinds and seeds the pending set, only the first call has effect"""
        with self._lock:
            if self._started.is_set():
                return
            for config in self.configs:
                for kind in config.kinds:
                    expected = {
                        obj.namespaced_name
                        for obj in self.client.list(kind)
                        if config.filter is None or config.filter(obj)
                    }
                    if expected:
                        logger.info("Waiting for %d objects of %s", len(expected), kind.gvk())
                        logger.debug("Objects of %s registered for readiness: %s", kind.gvk(), sorted(expected))
                        self.pending.setdefault(kind.gvk(), set()).update(expected)
            self._started.set()
            if not self.pending:
                self._ready.set()
        logger.info("Readiness manager started")

    def done(self, kind: type[KubernetesObject] | KubernetesObject, namespaced_name: NamespacedName):
        """Marks the object as reconciled, blocks until the manager is started"""
        if self._ready.is_set():
            return
        self._started.wait()

        gvk = kind.gvk()
        with self._lock:
            names = self.pending.get(gvk)
            if names is None:
                return
            names.discard(namespaced_name)
            if not names:
                del self.pending[gvk]
            if not self.pending and not self._ready.is_set():
                logger.info("All objects present at startup were reconciled")
                self._ready.set()

    def is_ready(self) -> bool:
        """Returns True once every tracked object is done"""
        return self._ready.is_set()

    def wait_ready(self, timeout: float = None, cancel: threading.Event = None) -> bool:
        """Blocks until the barrier is ready, returns False on timeout or cancellation"""
        if self._ready.is_set():
            return True
        if timeout is None:
            timeout = settings["readiness"]["timeout"]

        while not self._started.wait(POLL_INTERVAL):
            if cancel is not None and cancel.is_set():
                return False

        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return self._ready.is_set()
            if self._ready.wait(min(POLL_INTERVAL, remaining)):
                return True
            if cancel is not None and cancel.is_set():
                return False
