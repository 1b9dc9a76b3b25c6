"""Module containing all route classes"""

from typing import Optional

from routebinder.gateway import Referencable, ParentReference, Listener, ProtocolType, TLSMode, GATEWAY_GROUP
from routebinder.kubernetes import KubernetesObject
from routebinder.utils import primitive


class GatewayRoute(KubernetesObject, Referencable):
    """
    Base class for *Route objects in Gateway API.
    Subclasses declare which listener protocols they can be attached to
    """

    GROUP = GATEWAY_GROUP
    # Listener protocols this route kind can attach to
    PROTOCOLS: tuple[ProtocolType, ...] = ()
    # Routes without hostnames in their spec (TCP/UDP) match every listener hostname
    HAS_HOSTNAMES = True

    @property
    def parent_refs(self) -> list[ParentReference]:
        """Returns spec.parentRefs with Gateway API defaults applied"""
        return [ParentReference.from_model(ref) for ref in self.model.spec.parentRefs or []]

    @property
    def hostnames(self) -> list[str]:
        """Return all hostnames for this route"""
        if not self.HAS_HOSTNAMES:
            return []
        return list(self.model.spec.hostnames or [])

    @property
    def rules(self) -> list[dict]:
        """Returns spec.rules as plain dictionaries"""
        return primitive(self.model.spec.rules or [])

    @property
    def backend_refs(self) -> list[dict]:
        """Returns backendRefs of all rules"""
        return [backend for rule in self.rules for backend in rule.get("backendRefs") or []]

    def accepts_listener(self, listener: Listener) -> bool:
        """Returns True if the route kind is compatible with the listener protocol"""
        return listener.protocol in {protocol.value for protocol in self.PROTOCOLS}

    @property
    def reference(self) -> ParentReference:
        return ParentReference(name=self.name(), kind=self.KIND, namespace=self.namespace())


class _TerminatedRoute(GatewayRoute):
    """Route attached to HTTP listeners or HTTPS listeners terminating TLS"""

    PROTOCOLS = (ProtocolType.HTTP, ProtocolType.HTTPS)

    def accepts_listener(self, listener: Listener) -> bool:
        if not super().accepts_listener(listener):
            return False
        if listener.protocol == ProtocolType.HTTPS.value:
            return listener.tls is not None and listener.tls_mode == TLSMode.TERMINATE.value
        return True


class HTTPRoute(_TerminatedRoute):
    """HTTPRoute object, serves as replacement for Routes and Ingresses"""

    KIND = "HTTPRoute"
    RESOURCE = "httproutes.gateway.networking.k8s.io"

    def rule_names(self) -> list[Optional[str]]:
        """Returns names of all rules, None for unnamed rules"""
        return [rule.get("name") or None for rule in self.rules]


class GRPCRoute(_TerminatedRoute):
    """GRPCRoute object"""

    KIND = "GRPCRoute"
    RESOURCE = "grpcroutes.gateway.networking.k8s.io"


class TLSRoute(GatewayRoute):
    """TLSRoute object, routed by SNI"""

    VERSION = "v1alpha2"
    KIND = "TLSRoute"
    RESOURCE = "tlsroutes.gateway.networking.k8s.io"
    PROTOCOLS = (ProtocolType.TLS,)


class TCPRoute(GatewayRoute):
    """TCPRoute object"""

    VERSION = "v1alpha2"
    KIND = "TCPRoute"
    RESOURCE = "tcproutes.gateway.networking.k8s.io"
    PROTOCOLS = (ProtocolType.TCP,)
    HAS_HOSTNAMES = False


class UDPRoute(GatewayRoute):
    """UDPRoute object"""

    VERSION = "v1alpha2"
    KIND = "UDPRoute"
    RESOURCE = "udproutes.gateway.networking.k8s.io"
    PROTOCOLS = (ProtocolType.UDP,)
    HAS_HOSTNAMES = False


ROUTE_KINDS: tuple[type[GatewayRoute], ...] = (HTTPRoute, GRPCRoute, TLSRoute, TCPRoute, UDPRoute)
