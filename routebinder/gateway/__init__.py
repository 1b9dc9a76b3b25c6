"""Classes related to Gateways"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

GATEWAY_GROUP = "gateway.networking.k8s.io"
KIND_GATEWAY = "Gateway"


class Referencable(ABC):
    """Object that can be referenced in Gateway API style"""

    @property
    @abstractmethod
    def reference(self) -> "ParentReference":
        """
        Returns reference which can be used as parentRef or targetRef in Gateway API Objects.
        https://gateway-api.sigs.k8s.io/references/spec/#gateway.networking.k8s.io/v1beta1.ParentReference
        """


@dataclass(frozen=True)
class ParentReference:
    """
    Reference to a parent (or policy target) object.
    https://gateway-api.sigs.k8s.io/references/spec/#gateway.networking.k8s.io%2fv1beta1.ParentReference
    """

    name: str
    group: str = GATEWAY_GROUP
    kind: str = KIND_GATEWAY
    namespace: Optional[str] = None
    sectionName: Optional[str] = None  # pylint: disable=invalid-name
    port: Optional[int] = None

    @classmethod
    def from_model(cls, model) -> "ParentReference":
        """Creates reference from the model, applying Gateway API defaults for group and kind"""
        group = model.get("group")
        return cls(
            name=model["name"],
            group=GATEWAY_GROUP if group is None else group,
            kind=model.get("kind") or KIND_GATEWAY,
            namespace=model.get("namespace") or None,
            sectionName=model.get("sectionName") or None,
            port=model.get("port") or None,
        )

    def effective_namespace(self, default: str) -> str:
        """Returns namespace of the reference, defaulting to the namespace of the referencing object"""
        return self.namespace or default

    def with_namespace(self, default: str) -> "ParentReference":
        """Returns copy of the reference with the namespace filled in"""
        return ParentReference(
            name=self.name,
            group=self.group,
            kind=self.kind,
            namespace=self.effective_namespace(default),
            sectionName=self.sectionName,
            port=self.port,
        )

    def value_equal(self, other: "ParentReference") -> bool:
        """Compares group, kind, namespace and name, ignores section and port"""
        return (self.group, self.kind, self.namespace, self.name) == (
            other.group,
            other.kind,
            other.namespace,
            other.name,
        )

    def targets(self, kind: str, name: str, namespace: str, default_namespace: str, group=GATEWAY_GROUP) -> bool:
        """Returns True if this reference points to the object"""
        return (
            self.group == group
            and self.kind == kind
            and self.name == name
            and self.effective_namespace(default_namespace) == namespace
        )

    def asdict(self) -> dict[str, Any]:
        """Returns reference in the manifest form"""
        result: dict[str, Any] = {"group": self.group, "kind": self.kind, "name": self.name}
        if self.namespace:
            result["namespace"] = self.namespace
        if self.sectionName:
            result["sectionName"] = self.sectionName
        if self.port:
            result["port"] = self.port
        return result


class ProtocolType(enum.Enum):
    """Protocols a listener may accept"""

    HTTP = "HTTP"
    HTTPS = "HTTPS"
    TLS = "TLS"
    TCP = "TCP"
    UDP = "UDP"


class TLSMode(enum.Enum):
    """TLS modes of a listener"""

    TERMINATE = "Terminate"
    PASSTHROUGH = "Passthrough"


@dataclass(frozen=True)
class RouteGroupKind:
    """Route kind allowed by a listener"""

    kind: str
    group: str = GATEWAY_GROUP


@dataclass
class AllowedRoutes:
    """Defines which routes may be attached to a listener"""

    kinds: list[RouteGroupKind] = field(default_factory=list)
    # pylint: disable=invalid-name
    namespacesFrom: Optional[str] = None
    selector: Optional[Any] = None


@dataclass
class Listener:
    """Listener of a Gateway, parsed from the Gateway model"""

    name: str
    protocol: str
    port: int
    hostname: Optional[str] = None
    tls: Optional[dict] = None
    # pylint: disable=invalid-name
    allowedRoutes: Optional[AllowedRoutes] = None

    @classmethod
    def from_model(cls, model) -> "Listener":
        """Creates Listener from the model"""
        allowed = None
        if model.get("allowedRoutes"):
            routes = model["allowedRoutes"]
            namespaces = routes.get("namespaces") or {}
            kinds = [
                RouteGroupKind(kind=kind["kind"], group=GATEWAY_GROUP if kind.get("group") is None else kind["group"])
                for kind in routes.get("kinds") or []
            ]
            allowed = AllowedRoutes(
                kinds=kinds,
                namespacesFrom=namespaces.get("from") or None,
                selector=namespaces.get("selector") or None,
            )
        tls = model.get("tls")
        return cls(
            name=model["name"],
            protocol=model["protocol"],
            port=model["port"],
            hostname=model.get("hostname") or None,
            tls=dict(tls) if tls else None,
            allowedRoutes=allowed,
        )

    @property
    def tls_mode(self) -> Optional[str]:
        """Returns TLS mode, Terminate when TLS is configured without mode"""
        if self.tls is None:
            return None
        return self.tls.get("mode") or TLSMode.TERMINATE.value

    @property
    def certificate_refs(self) -> list:
        """Returns TLS certificate references of the listener"""
        if self.tls is None:
            return []
        return list(self.tls.get("certificateRefs") or [])
