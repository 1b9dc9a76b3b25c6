"""Reconcilers binding the attachment, policy and status machinery together for a single primary object"""

import logging

from routebinder.context import TranslateContext
from routebinder.gateway.gateway_api.gateway import Gateway
from routebinder.gateway.gateway_proxy import GatewayProxy, VENDOR_GROUP
from routebinder.kubernetes import KubernetesObject, NamespacedName
from routebinder.kubernetes.endpoint_slice import EndpointSlice, SERVICE_NAME_LABEL
from routebinder.kubernetes.secret import Secret
from routebinder.kubernetes.service import Service

logger = logging.getLogger(__name__)


class GatewayProxyError(Exception):
    """Gateway does not point to a usable GatewayProxy"""


def add_service_endpoints(client, tctx: TranslateContext, name: NamespacedName) -> Service:
    """Adds the Service and its EndpointSlices to the context"""
    service = client.get(Service, name.name, name.namespace)
    tctx.add_service(service)
    slices = client.list(EndpointSlice, namespace=name.namespace, labels={SERVICE_NAME_LABEL: name.name})
    tctx.add_endpoint_slices(name, slices)
    return service


def process_gateway_proxy(client, tctx: TranslateContext, gateway: Gateway, owner: KubernetesObject):
    """
    Adds GatewayProxy referenced by the Gateway, together with its admin key Secret and control plane Service.
    Raises GatewayProxyError when the Gateway has parametersRef which does not lead to a GatewayProxy
    """
    ref = gateway.parameters_ref
    if ref is None:
        return

    key = gateway.namespaced_name_kind
    if ref.get("group") == VENDOR_GROUP and ref.get("kind") == GatewayProxy.KIND:
        proxy = client.get(GatewayProxy, ref["name"], gateway.namespace())
        logger.info("Found GatewayProxy %s for %r", proxy.namespaced_name, gateway)
        tctx.add_gateway_proxy(key, proxy)
        if owner.namespaced_name_kind != key:
            tctx.add_parent(owner, gateway)

        secret_name = proxy.admin_key_secret
        if secret_name:
            tctx.add_secret(client.get(Secret, secret_name, gateway.namespace()))
        if proxy.service_name:
            add_service_endpoints(client, tctx, NamespacedName(proxy.namespace(), proxy.service_name))

    if key not in tctx.gateway_proxies:
        raise GatewayProxyError(f"no gateway proxy found for gateway: {gateway.name()}")
