"""Closed set of resource kinds handled by the controller"""

import logging

from routebinder.gateway.gateway_api.gateway import Gateway, GatewayClass
from routebinder.gateway.gateway_api.reference_grant import ReferenceGrant
from routebinder.gateway.gateway_api.route import ROUTE_KINDS
from routebinder.gateway.gateway_proxy import GatewayProxy, PluginConfig
from routebinder.kubernetes import KubernetesObject
from routebinder.kubernetes.exceptions import UnexpectedKindError
from routebinder.kubernetes.endpoint_slice import EndpointSlice
from routebinder.kubernetes.ingress import Ingress, IngressClass
from routebinder.kubernetes.namespace import Namespace
from routebinder.kubernetes.secret import Secret
from routebinder.kubernetes.service import Service
from routebinder.policy.backend_traffic import BackendTrafficPolicy
from routebinder.policy.route_policy import HTTPRoutePolicy

logger = logging.getLogger(__name__)


class UnknownObject(KubernetesObject):
    """Object of a kind the controller does not handle"""

    @property
    def manifest_kind(self) -> str:
        """Returns kind written in the manifest"""
        return self.model.kind or ""


KINDS: tuple[type[KubernetesObject], ...] = (
    GatewayClass,
    Gateway,
    *ROUTE_KINDS,
    ReferenceGrant,
    Service,
    EndpointSlice,
    Secret,
    Namespace,
    Ingress,
    IngressClass,
    GatewayProxy,
    PluginConfig,
    BackendTrafficPolicy,
    HTTPRoutePolicy,
)

REGISTRY: dict[tuple[str, str], type[KubernetesObject]] = {(kind.GROUP, kind.KIND): kind for kind in KINDS}


def _group(api_version: str) -> str:
    if "/" not in api_version:
        return ""
    return api_version.split("/", 1)[0]


def kind_for(api_version: str, kind: str) -> type[KubernetesObject]:
    """Returns class registered for the kind, UnknownObject if there is none"""
    return REGISTRY.get((_group(api_version), kind), UnknownObject)


def wrap(model: dict, context=None) -> KubernetesObject:
    """Wraps the manifest into the class of its kind"""
    cls = kind_for(model.get("apiVersion", ""), model.get("kind", ""))
    if cls is UnknownObject:
        logger.debug("Unknown kind %s of %s", model.get("kind"), model.get("apiVersion"))
    return cls(model, context=context)


def narrow(kind: type[KubernetesObject], model: dict, context=None) -> KubernetesObject:
    """Wraps the manifest and checks it is of the requested kind, raises UnexpectedKindError otherwise"""
    obj = wrap(model, context=context)
    if not isinstance(obj, kind):
        raise UnexpectedKindError(f"Expected {kind.KIND}, got {model.get('kind')} of {model.get('apiVersion')}")
    return obj
