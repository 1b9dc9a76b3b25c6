"""
Decides which Gateway listeners a route is attached to.
All functions only read from the cluster, statuses are computed but never written here
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from routebinder.conditions import Condition, ConditionType, Reason, condition_status, no_matching_listener_hostname
from routebinder.conditions import is_condition_present_and_equal
from routebinder.config import settings
from routebinder.gateway import AllowedRoutes, Listener, ParentReference, ProtocolType, GATEWAY_GROUP, KIND_GATEWAY
from routebinder.gateway.gateway_api.gateway import Gateway, GatewayClass
from routebinder.gateway.gateway_api.route import GatewayRoute, ROUTE_KINDS
from routebinder.kubernetes import Selector
from routebinder.kubernetes.exceptions import KubernetesError, NotFoundError
from routebinder.kubernetes.namespace import Namespace
from routebinder.kubernetes.secret import Secret
from routebinder.permissions import ObjectReference, ReferenceGrantFrom, permitted
from routebinder.utils import hostnames_intersect, hostnames_match

logger = logging.getLogger(__name__)

# Listener protocols on which a hostname can be matched against the request
HOSTNAME_PROTOCOLS = {ProtocolType.HTTP.value, ProtocolType.HTTPS.value, ProtocolType.TLS.value}


@dataclass
class AttachmentVerdict:
    """Outcome of evaluating one parentRef of a route against one Gateway"""

    gateway: Gateway
    parent_ref: ParentReference
    accepted: bool
    reason: Reason
    listener_name: Optional[str] = None
    conditions: list[dict] = field(default_factory=list)

    @property
    def listener(self) -> Optional[Listener]:
        """Returns the matched listener"""
        if self.listener_name is None:
            return None
        return self.gateway.get_listener(self.listener_name)


def route_kinds_for(listener: Listener) -> list[type[GatewayRoute]]:
    """Returns route kinds which can be attached to the listener protocol"""
    return [kind for kind in ROUTE_KINDS if listener.protocol in {protocol.value for protocol in kind.PROTOCOLS}]


def route_hostnames_intersect_listener(route: GatewayRoute, listener: Listener) -> bool:
    """Returns True if the route has no hostnames, the listener has none, or at least one of them intersects"""
    hostnames = route.hostnames
    if not hostnames or not listener.hostname:
        return True
    return any(hostnames_intersect(listener.hostname, hostname) for hostname in hostnames)


def is_route_kind_allowed(route: GatewayRoute, allowed: AllowedRoutes) -> bool:
    """Returns True if the listener does not restrict kinds or lists the kind of the route"""
    if not allowed.kinds:
        return True
    return any(kind.group == route.GROUP and kind.kind == route.KIND for kind in allowed.kinds)


def is_route_namespace_allowed(
    client, route: GatewayRoute, allowed: AllowedRoutes, gateway_namespace: str, parent_ref_namespace: Optional[str]
) -> bool:
    """Evaluates allowedRoutes.namespaces of the listener for the namespace of the route"""
    if allowed.namespacesFrom is None or allowed.namespacesFrom == "All":
        return True

    route_namespace = route.namespace()
    if allowed.namespacesFrom == "Same":
        if parent_ref_namespace is None:
            return gateway_namespace == route_namespace
        return route_namespace == parent_ref_namespace

    if allowed.namespacesFrom == "Selector":
        if allowed.selector is None:
            return False
        try:
            namespace = client.get(Namespace, route_namespace)
        except KubernetesError as e:
            logger.warning("Unable to get namespace %s of %r: %s", route_namespace, route, e)
            return False
        return Selector.from_model(allowed.selector).matches(namespace.labels)

    return True


def route_matches_allowed_routes(
    client, route: GatewayRoute, listener: Listener, gateway_namespace: str, parent_ref_namespace: Optional[str]
) -> bool:
    """Returns True if both the kind and the namespace of the route are allowed by the listener"""
    allowed = listener.allowedRoutes
    if allowed is None:
        return True
    if not is_route_kind_allowed(route, allowed):
        logger.debug("%r is not allowed by kind on listener %s", route, listener.name)
        return False
    if not is_route_namespace_allowed(client, route, allowed, gateway_namespace, parent_ref_namespace):
        logger.debug("%r is not allowed by namespace on listener %s", route, listener.name)
        return False
    return True


def check_route_accepted_by_listener(
    client, route: GatewayRoute, gateway: Gateway, listener: Listener, parent_ref: ParentReference
) -> tuple[bool, Reason]:
    """Evaluates section, port, protocol, hostnames and allowedRoutes in this order"""
    if parent_ref.sectionName and parent_ref.sectionName != listener.name:
        return False, Reason.NO_MATCHING_PARENT
    if parent_ref.port and parent_ref.port != listener.port:
        return False, Reason.NO_MATCHING_PARENT
    if not route.accepts_listener(listener):
        return False, Reason.NO_MATCHING_PARENT
    if not route_hostnames_intersect_listener(route, listener):
        return False, Reason.NO_MATCHING_LISTENER_HOSTNAME
    if not route_matches_allowed_routes(client, route, listener, gateway.namespace(), parent_ref.namespace):
        return False, Reason.NOT_ALLOWED_BY_LISTENERS
    return True, Reason.ACCEPTED


def _accepted_condition(route: GatewayRoute, accepted: bool, reason: Reason) -> dict:
    return Condition(
        type=ConditionType.ACCEPTED,
        status=condition_status(accepted),
        reason=reason,
        observedGeneration=route.generation,
    ).stamped()


def resolve_parent_refs(
    client, route: GatewayRoute, parent_refs: list[ParentReference] = None, controller_name: str = None
) -> list[AttachmentVerdict]:
    """
    Returns one verdict for every parentRef pointing to an existing Gateway of this controller.
    References to other kinds, missing Gateways or GatewayClasses and Gateways of other controllers are skipped
    """
    if parent_refs is None:
        parent_refs = route.parent_refs
    controller_name = controller_name or settings["controller_name"]

    verdicts = []
    for parent_ref in parent_refs:
        if parent_ref.kind != KIND_GATEWAY or parent_ref.group != GATEWAY_GROUP:
            continue
        namespace = parent_ref.effective_namespace(route.namespace())

        try:
            gateway = client.get(Gateway, parent_ref.name, namespace)
        except NotFoundError:
            logger.debug("Gateway %s/%s referenced by %r does not exist", namespace, parent_ref.name, route)
            continue
        try:
            gateway_class = client.get(GatewayClass, gateway.gateway_class_name)
        except NotFoundError:
            logger.debug("GatewayClass %s of %r does not exist", gateway.gateway_class_name, gateway)
            continue
        if gateway_class.controller_name != controller_name:
            continue

        accepted = False
        reason = Reason.NO_MATCHING_PARENT
        listener_name = None
        for listener in gateway.listeners:
            ok, listener_reason = check_route_accepted_by_listener(client, route, gateway, listener, parent_ref)
            if listener_reason in (Reason.NOT_ALLOWED_BY_LISTENERS, Reason.ACCEPTED):
                listener_name = listener.name
            if ok:
                accepted = True
                reason = Reason.ACCEPTED
                break
            if listener_reason != Reason.NO_MATCHING_PARENT:
                reason = listener_reason

        verdicts.append(
            AttachmentVerdict(
                gateway=gateway,
                parent_ref=parent_ref.with_namespace(route.namespace()),
                accepted=accepted,
                reason=reason,
                listener_name=listener_name,
                conditions=[_accepted_condition(route, accepted, reason)],
            )
        )
    return verdicts


def is_route_accepted(verdicts: list[AttachmentVerdict]) -> bool:
    """Returns True if at least one parent accepted the route"""
    return any(verdict.accepted for verdict in verdicts)


def list_routes(client, kinds: list[type[GatewayRoute]]) -> list[GatewayRoute]:
    """Lists routes of the kinds in all namespaces"""
    return [route for kind in kinds for route in client.list(kind)]


def attached_routes_for_listener(
    client, gateway: Gateway, listener: Listener, routes: list[GatewayRoute] = None
) -> int:
    """
    Counts routes accepted by the listener through a parentRef pointing to the gateway.
    Every route is counted at most once, the routes are listed from the cluster unless given
    """
    if routes is None:
        routes = list_routes(client, route_kinds_for(listener))

    attached = 0
    for route in routes:
        for parent_ref in route.parent_refs:
            if not parent_ref.targets(KIND_GATEWAY, gateway.name(), gateway.namespace(), route.namespace()):
                continue
            accepted, _ = check_route_accepted_by_listener(client, route, gateway, listener, parent_ref)
            if accepted:
                attached += 1
                break
    return attached


def _supported_kinds(listener: Listener) -> tuple[list[dict], bool]:
    compatible = {kind.KIND for kind in route_kinds_for(listener)}
    if listener.allowedRoutes is None or not listener.allowedRoutes.kinds:
        return [{"group": GATEWAY_GROUP, "kind": kind.KIND} for kind in route_kinds_for(listener)], True

    supported = []
    valid = True
    for kind in listener.allowedRoutes.kinds:
        if kind.group != GATEWAY_GROUP or kind.kind not in compatible:
            valid = False
            continue
        supported.append({"group": kind.group, "kind": kind.kind})
    return supported, valid


def certificate_ref_problem(client, gateway: Gateway, listener: Listener) -> Optional[tuple[Reason, str]]:
    """Returns reason and message of the first invalid certificate reference of the listener"""
    for ref in listener.certificate_refs:
        group = ref.get("group") or ""
        kind = ref.get("kind") or Secret.KIND
        if group:
            return Reason.INVALID_CERTIFICATE_REF, f'Invalid Group, expect "", got "{group}"'
        if kind != Secret.KIND:
            return Reason.INVALID_CERTIFICATE_REF, f'Invalid Kind, expect "Secret", got "{kind}"'

        namespace = ref.get("namespace") or None
        if not permitted(
            client,
            ReferenceGrantFrom(GATEWAY_GROUP, KIND_GATEWAY, gateway.namespace()),
            ObjectReference("", Secret.KIND, ref["name"], namespace),
        ):
            return Reason.REF_NOT_PERMITTED, "certificateRefs cross namespaces is not permitted"

        try:
            secret = client.get(Secret, ref["name"], namespace or gateway.namespace())
        except NotFoundError as e:
            return Reason.INVALID_CERTIFICATE_REF, str(e)
        problem = secret.tls_problem()
        if problem:
            return Reason.INVALID_CERTIFICATE_REF, f"Malformed Secret referenced: {problem}"
    return None


def listener_status(client, gateway: Gateway, listener: Listener, attached_routes: int) -> dict:
    """Computes status of a single listener"""
    generation = gateway.generation

    def condition(condition_type, status, reason, message=""):
        return Condition(
            type=condition_type,
            status=condition_status(status),
            reason=reason,
            message=message,
            observedGeneration=generation,
        )

    programmed = condition(ConditionType.PROGRAMMED, True, Reason.PROGRAMMED)
    accepted = condition(ConditionType.ACCEPTED, True, Reason.ACCEPTED)
    conflicted = condition(ConditionType.CONFLICTED, False, Reason.NO_CONFLICTS)
    resolved_refs = condition(ConditionType.RESOLVED_REFS, True, Reason.RESOLVED_REFS)

    supported_kinds, valid_kinds = _supported_kinds(listener)
    if not valid_kinds:
        resolved_refs.status = "False"
        resolved_refs.reason = Reason.INVALID_ROUTE_KINDS

    if listener.tls is not None:
        problem = certificate_ref_problem(client, gateway, listener)
        if problem is not None:
            resolved_refs.status = "False"
            resolved_refs.reason, resolved_refs.message = problem
            programmed.status = "False"
            programmed.reason = Reason.INVALID

    return {
        "name": listener.name,
        "supportedKinds": supported_kinds,
        "attachedRoutes": attached_routes,
        "conditions": [cond.stamped() for cond in (programmed, accepted, conflicted, resolved_refs)],
    }


def listener_statuses(client, gateway: Gateway) -> list[dict]:
    """
    Computes status of every listener in spec order.
    An existing listener status is kept as is when nothing but timestamps would change
    """
    previous = {status["name"]: status for status in gateway.status.get("listeners") or []}
    routes_by_kind: dict[type[GatewayRoute], list[GatewayRoute]] = {}

    statuses = []
    for listener in gateway.listeners:
        routes = []
        for kind in route_kinds_for(listener):
            if kind not in routes_by_kind:
                routes_by_kind[kind] = client.list(kind)
            routes.extend(routes_by_kind[kind])
        attached = attached_routes_for_listener(client, gateway, listener, routes)
        status = listener_status(client, gateway, listener, attached)

        old = previous.get(listener.name)
        if (
            old is not None
            and old.get("attachedRoutes") == attached
            and old.get("supportedKinds") == status["supportedKinds"]
            and all(
                is_condition_present_and_equal(old.get("conditions") or [], Condition.from_model(cond))
                for cond in status["conditions"]
            )
        ):
            status = old
        statuses.append(status)
    return statuses


def _union_of_listener_hostnames(verdicts: list[AttachmentVerdict]) -> tuple[list[str], bool]:
    hostnames = []
    for verdict in verdicts:
        if verdict.listener_name:
            listeners = [listener for listener in verdict.gateway.listeners if listener.name == verdict.listener_name]
        else:
            listeners = [listener for listener in verdict.gateway.listeners if listener.protocol in HOSTNAME_PROTOCOLS]
        for listener in listeners:
            if not listener.hostname:
                return [], True
            hostnames.append(listener.hostname)
    return hostnames, False


def _minimum_hostname_intersection(verdicts: list[AttachmentVerdict], hostname: str) -> Optional[str]:
    for verdict in verdicts:
        for listener in verdict.gateway.listeners:
            if verdict.listener_name and verdict.listener_name != listener.name:
                continue
            if not listener.hostname or hostnames_match(listener.hostname, hostname):
                return hostname
            if hostnames_match(hostname, listener.hostname):
                return listener.hostname
    return None


def filter_hostnames(verdicts: list[AttachmentVerdict], route: GatewayRoute) -> list[str]:
    """
    Returns hostnames the route should be served on, empty list means any hostname.
    Raises ReasonError when none of the route hostnames intersect with the accepted listeners
    """
    accepted = [verdict for verdict in verdicts if verdict.accepted]
    if not route.hostnames:
        hostnames, match_any = _union_of_listener_hostnames(accepted)
        return [] if match_any else hostnames

    filtered = []
    for hostname in route.hostnames:
        matching = _minimum_hostname_intersection(accepted, hostname)
        if matching and matching not in filtered:
            filtered.append(matching)
    if not filtered:
        raise no_matching_listener_hostname()
    logger.debug("Hostnames of %r filtered from %s to %s", route, route.hostnames, filtered)
    return filtered


def route_parent_status(verdict: AttachmentVerdict, controller_name: str = None) -> dict:
    """Returns RouteParentStatus skeleton with the conditions of the verdict"""
    return {
        "parentRef": verdict.parent_ref.asdict(),
        "controllerName": controller_name or settings["controller_name"],
        "conditions": [dict(condition) for condition in verdict.conditions],
    }
