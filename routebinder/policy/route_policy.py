"""HTTPRoutePolicy, attaches route level settings to HTTPRoute rules or Ingresses"""

import logging
from typing import Optional

from routebinder.conditions import Condition
from routebinder.context import TranslateContext
from routebinder.gateway import ParentReference
from routebinder.gateway.gateway_api.route import HTTPRoute
from routebinder.gateway.gateway_proxy import VENDOR_GROUP
from routebinder.kubernetes import KubernetesObject, NamespacedName
from routebinder.kubernetes.exceptions import NotFoundError
from routebinder.kubernetes.ingress import Ingress, get_ingress_class
from routebinder.policy import Policy, policy_condition, policy_conflict_condition, set_ancestors, status_update
from routebinder.policy import update_delete_ancestors
from routebinder.status import Updater

logger = logging.getLogger(__name__)


class HTTPRoutePolicy(Policy):
    """HTTPRoutePolicy object"""

    GROUP = VENDOR_GROUP
    VERSION = "v1alpha1"
    KIND = "HTTPRoutePolicy"
    RESOURCE = "httproutepolicies.apisix.apache.org"


def list_policies_targeting(client, target: type[KubernetesObject], name: NamespacedName) -> list[HTTPRoutePolicy]:
    """Lists HTTPRoutePolicies in the namespace of the target which point to it"""
    return [
        policy
        for policy in client.list(HTTPRoutePolicy, namespace=name.namespace)
        if policy.targets(target.KIND, name.name, target.GROUP)
    ]


def find_policies_which_target_rule(
    rule_name: Optional[str], kind: str, policies: list[HTTPRoutePolicy]
) -> list[HTTPRoutePolicy]:
    """Returns policies with a targetRef of the kind which has no section or the section equal to the rule name"""
    return [
        policy
        for policy in policies
        if any(ref.kind == kind and (not ref.sectionName or ref.sectionName == rule_name) for ref in policy.target_refs)
    ]


def check_policies_conflict(policies: list[HTTPRoutePolicy]) -> bool:
    """Returns True if the policies do not all have the same priority"""
    if not policies:
        return False
    priority = policies[0].priority
    return any(policy.priority != priority for policy in policies)


def _route_policy_condition(policy: HTTPRoutePolicy, conflict_message: Optional[str]) -> Condition:
    if conflict_message:
        return policy_conflict_condition(policy.generation, conflict_message)
    return policy_condition(policy.generation, True, "")


def _set_policy_ancestors(
    tctx: TranslateContext,
    policy: HTTPRoutePolicy,
    parent_refs: list[ParentReference],
    conflict_message: Optional[str],
    controller_name: Optional[str],
):
    if conflict_message is None:
        tctx.add_http_route_policy(policy)
    status = policy.status
    if set_ancestors(status, parent_refs, _route_policy_condition(policy, conflict_message), controller_name):
        tctx.enqueue_status(status_update(policy, status))


def process_route_policies(client, tctx: TranslateContext, route: HTTPRoute, controller_name: str = None):
    """
    Resolves HTTPRoutePolicies targeting the HTTPRoute.
    Policies which target the same rule with different priorities are all conflicted
    """
    policies = list_policies_targeting(client, HTTPRoute, route.namespaced_name)
    if not policies:
        return

    parent_refs = [ref.with_namespace(route.namespace()) for ref in route.parent_refs]

    conflicted: set[NamespacedName] = set()
    for rule_name in route.rule_names():
        targeting = find_policies_which_target_rule(rule_name, HTTPRoute.KIND, policies)
        if check_policies_conflict(targeting):
            conflicted.update(policy.namespaced_name for policy in targeting)

    for policy in policies:
        message = None
        if policy.namespaced_name in conflicted:
            message = "HTTPRoutePolicy conflict with others target to the HTTPRoute"
            logger.info("%s %s is conflicted on %r", policy.KIND, policy.namespaced_name, route)
        _set_policy_ancestors(tctx, policy, parent_refs, message, controller_name)


def process_ingress_route_policies(client, tctx: TranslateContext, ingress: Ingress, controller_name: str = None):
    """Resolves HTTPRoutePolicies targeting the Ingress, differing priorities conflict all of them"""
    policies = list_policies_targeting(client, Ingress, ingress.namespaced_name)
    if not policies:
        return

    message = None
    if check_policies_conflict(policies):
        message = "HTTPRoutePolicy conflict with others target to the Ingress"
        logger.info("HTTPRoutePolicies targeting %r are conflicted", ingress)

    for policy in policies:
        _set_policy_ancestors(tctx, policy, tctx.route_parent_refs, message, controller_name)


def update_route_policies_on_deleting(client, updater: Updater, name: NamespacedName):
    """Prunes ancestors of policies which targeted the deleted HTTPRoute"""
    routes: dict[NamespacedName, Optional[HTTPRoute]] = {}
    for policy in list_policies_targeting(client, HTTPRoute, name):
        parent_refs: list[ParentReference] = []
        for ref in policy.target_refs:
            if ref.kind != HTTPRoute.KIND:
                continue
            target = NamespacedName(policy.namespace(), ref.name)
            if target not in routes:
                try:
                    routes[target] = client.get(HTTPRoute, target.name, target.namespace)
                except NotFoundError:
                    routes[target] = None
            route = routes[target]
            if route is not None:
                parent_refs.extend(parent.with_namespace(route.namespace()) for parent in route.parent_refs)
        update_delete_ancestors(updater, policy, parent_refs)


def update_ingress_policies_on_deleting(client, updater: Updater, name: NamespacedName):
    """Prunes ancestors of policies which targeted the deleted Ingress"""
    ancestors: dict[NamespacedName, Optional[ParentReference]] = {}
    for policy in list_policies_targeting(client, Ingress, name):
        parent_refs: list[ParentReference] = []
        for ref in policy.target_refs:
            if ref.kind != Ingress.KIND:
                continue
            target = NamespacedName(policy.namespace(), ref.name)
            if target not in ancestors:
                try:
                    ingress = client.get(Ingress, target.name, target.namespace)
                    ancestors[target] = get_ingress_class(client, ingress.ingress_class_name).reference
                except NotFoundError:
                    ancestors[target] = None
            if ancestors[target] is not None:
                parent_refs.append(ancestors[target])
        update_delete_ancestors(updater, policy, parent_refs)

