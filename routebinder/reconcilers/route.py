"""Reconcilers of Gateway API routes"""

import logging
from typing import Optional

from routebinder.attachment import filter_hostnames, is_route_accepted, resolve_parent_refs, route_parent_status
from routebinder.conditions import Reason, ReasonError, set_route_condition_accepted, set_route_condition_resolved_refs
from routebinder.context import TranslateContext
from routebinder.gateway import GATEWAY_GROUP
from routebinder.gateway.gateway_api.route import GatewayRoute, HTTPRoute, GRPCRoute, TCPRoute, TLSRoute, UDPRoute
from routebinder.gateway.gateway_proxy import PluginConfig
from routebinder.kubernetes import NamespacedName
from routebinder.kubernetes.endpoint_slice import EndpointSlice, SERVICE_NAME_LABEL
from routebinder.kubernetes.exceptions import KubernetesError, NotFoundError
from routebinder.kubernetes.service import Service
from routebinder.permissions import ObjectReference, ReferenceGrantFrom, permitted
from routebinder.policy.backend_traffic import process_backend_traffic_policy
from routebinder.policy.route_policy import process_route_policies, update_route_policies_on_deleting
from routebinder.provider import Provider
from routebinder.readiness import ReadinessManager
from routebinder.reconcilers import GatewayProxyError, process_gateway_proxy
from routebinder.status import Update, Updater, replace_status

logger = logging.getLogger(__name__)


def invalid_kind_error(kind: str) -> ReasonError:
    """Error of a backendRef pointing to something else than a Service"""
    return ReasonError(Reason.INVALID_KIND, f"Invalid kind {kind}, only Service is supported")


class RouteReconciler:
    """
    Reconciles routes of a single kind.
    Resolves parents, collects everything the route references into a TranslateContext, writes route status
    and hands accepted routes to the provider
    """

    KIND: type[GatewayRoute] = GatewayRoute

    # pylint: disable=too-many-arguments
    def __init__(
        self,
        client,
        provider: Provider,
        updater: Updater,
        readiness: Optional[ReadinessManager] = None,
        controller_name: Optional[str] = None,
    ):
        self.client = client
        self.provider = provider
        self.updater = updater
        self.readiness = readiness
        self.controller_name = controller_name

    def reconcile(self, name: NamespacedName):
        """Reconciles route of the name, reports it as done to the readiness barrier even on failure"""
        try:
            self._reconcile(name)
        finally:
            if self.readiness is not None:
                self.readiness.done(self.KIND, name)

    def on_deleted(self, name: NamespacedName):
        """Called when the route no longer exists"""

    def process_policies(self, tctx: TranslateContext, route: GatewayRoute):
        """Resolves policies attached to the route itself"""

    def _reconcile(self, name: NamespacedName):
        try:
            route = self.client.get(self.KIND, name.name, name.namespace)
        except NotFoundError:
            logger.info("%s %s was deleted", self.KIND.KIND, name)
            self.on_deleted(name)
            self.provider.delete(self.KIND.from_spec(name.name, name.namespace))
            return

        verdicts = resolve_parent_refs(self.client, route, controller_name=self.controller_name)
        if not verdicts:
            logger.debug("%r has no parents managed by this controller", route)
            return

        tctx = TranslateContext()
        for parent_ref in route.parent_refs:
            tctx.add_route_parent_ref(parent_ref.with_namespace(route.namespace()))

        accepted, message = True, "Route is accepted"
        for verdict in verdicts:
            try:
                process_gateway_proxy(self.client, tctx, verdict.gateway, route)
            except (KubernetesError, GatewayProxyError) as e:
                accepted, message = False, str(e)

        backend_error: Optional[Exception] = None
        try:
            self.process_rules(tctx, route)
        except ReasonError as e:
            if e.reason == Reason.INVALID_KIND:
                backend_error = e
            else:
                accepted, message = False, str(e)
        except KubernetesError as e:
            accepted, message = False, str(e)

        try:
            self.process_policies(tctx, route)
        except KubernetesError as e:
            accepted, message = False, str(e)

        error = self.process_backend_refs(tctx, route)
        if backend_error is None:
            backend_error = error

        process_backend_traffic_policy(self.client, tctx, self.controller_name)

        hostnames: Optional[list[str]] = None
        hostname_error: Optional[ReasonError] = None
        try:
            hostnames = filter_hostnames(verdicts, route)
        except ReasonError as e:
            hostname_error = e
            accepted, message = False, str(e)

        parents = []
        for verdict in verdicts:
            parent = route_parent_status(verdict, self.controller_name)
            set_route_condition_accepted(parent, route.generation, accepted, message)
            set_route_condition_resolved_refs(parent, route.generation, backend_error)
            parents.append(parent)
        status = route.status
        status["parents"] = parents
        self.updater.update(Update(route.namespaced_name, self.KIND, replace_status(self.KIND, status)))
        tctx.flush_status(self.updater)

        if is_route_accepted(verdicts) and hostname_error is None:
            translated = route.copy()
            if hostnames and route.HAS_HOSTNAMES:
                translated.model.spec["hostnames"] = hostnames
            self.provider.update(tctx, translated)

    def process_rules(self, tctx: TranslateContext, route: GatewayRoute):
        """Collects PluginConfigs from ExtensionRef filters and backendRefs of all rules, raises the last error"""
        error: Optional[Exception] = None
        for rule in route.rules:
            for rule_filter in rule.get("filters") or []:
                ref = rule_filter.get("extensionRef")
                if rule_filter.get("type") != "ExtensionRef" or not ref or ref.get("kind") != PluginConfig.KIND:
                    continue
                try:
                    tctx.add_plugin_config(self.client.get(PluginConfig, ref["name"], route.namespace()))
                except KubernetesError as e:
                    error = e
            for backend in rule.get("backendRefs") or []:
                kind = backend.get("kind") or Service.KIND
                if kind != Service.KIND:
                    error = invalid_kind_error(kind)
                    continue
                tctx.backend_refs.append(
                    {
                        "name": backend["name"],
                        "namespace": backend.get("namespace") or route.namespace(),
                        "port": backend.get("port"),
                    }
                )
        if error is not None:
            raise error

    def process_backend_refs(self, tctx: TranslateContext, route: GatewayRoute) -> Optional[Exception]:
        """Resolves Services of the collected backendRefs, returns the last problem found"""
        error: Optional[Exception] = None
        route_namespace = route.namespace()
        for backend in tctx.backend_refs:
            target = NamespacedName(backend.get("namespace") or route_namespace, backend["name"])
            if backend.get("kind", Service.KIND) != Service.KIND:
                error = invalid_kind_error(backend["kind"])
                continue
            if backend.get("port") is None:
                error = ValueError("port is required")
                continue

            try:
                service = self.client.get(Service, target.name, target.namespace)
            except NotFoundError:
                error = ReasonError(Reason.BACKEND_NOT_FOUND, f"Service {target} not found")
                continue
            except KubernetesError as e:
                error = e
                continue

            if target.namespace != route_namespace and not permitted(
                self.client,
                ReferenceGrantFrom(GATEWAY_GROUP, self.KIND.KIND, route_namespace),
                ObjectReference("", Service.KIND, target.name, target.namespace),
            ):
                error = ReasonError(
                    Reason.REF_NOT_PERMITTED,
                    f"{target} is in a different namespace than the {self.KIND.KIND} {route.namespaced_name} "
                    f"and no ReferenceGrant allowing reference is configured",
                )
                continue

            if service.is_external_name:
                tctx.add_service(service)
                continue
            if not service.has_port(backend["port"]):
                error = ValueError(f"port {backend['port']} not found in service {target.name}")
                continue
            tctx.add_service(service)

            try:
                slices = self.client.list(
                    EndpointSlice, namespace=target.namespace, labels={SERVICE_NAME_LABEL: target.name}
                )
            except KubernetesError as e:
                logger.error("Failed to list EndpointSlices of Service %s: %s", target, e)
                error = e
                continue
            tctx.add_endpoint_slices(target, slices)
        return error


class HTTPRouteReconciler(RouteReconciler):
    """Reconciles HTTPRoutes, including HTTPRoutePolicies targeting them"""

    KIND = HTTPRoute

    def on_deleted(self, name: NamespacedName):
        update_route_policies_on_deleting(self.client, self.updater, name)

    def process_policies(self, tctx: TranslateContext, route: GatewayRoute):
        process_route_policies(self.client, tctx, route, self.controller_name)


class GRPCRouteReconciler(RouteReconciler):
    """Reconciles GRPCRoutes"""

    KIND = GRPCRoute


class TLSRouteReconciler(RouteReconciler):
    """Reconciles TLSRoutes"""

    KIND = TLSRoute


class TCPRouteReconciler(RouteReconciler):
    """Reconciles TCPRoutes"""

    KIND = TCPRoute


class UDPRouteReconciler(RouteReconciler):
    """Reconciles UDPRoutes"""

    KIND = UDPRoute
