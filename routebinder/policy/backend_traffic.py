"""BackendTrafficPolicy, attaches upstream settings to Services or single Service ports"""

import logging
from typing import Optional

from routebinder.conditions import Condition
from routebinder.context import TranslateContext
from routebinder.gateway.gateway_proxy import VENDOR_GROUP
from routebinder.kubernetes import NamespacedName
from routebinder.kubernetes.exceptions import KubernetesError
from routebinder.kubernetes.service import Service
from routebinder.policy import Policy, PolicyTargetKey, policy_condition, policy_conflict_condition
from routebinder.policy import set_ancestors, status_update

logger = logging.getLogger(__name__)

ACCEPTED_MESSAGE = "Policy has been accepted"


class BackendTrafficPolicy(Policy):
    """BackendTrafficPolicy object"""

    GROUP = VENDOR_GROUP
    VERSION = "v1alpha1"
    KIND = "BackendTrafficPolicy"
    RESOURCE = "backendtrafficpolicies.apisix.apache.org"

    def targets_service(self, service: Service) -> bool:
        """Returns True if the policy targets the Service"""
        return self.namespace() == service.namespace() and self.targets(Service.KIND, service.name())


def _conflict_message(namespace: str, name: str) -> str:
    return f"Unable to target Service {namespace}/{name}, because it conflicts with another BackendTrafficPolicy"


def _collect_policies(client, tctx: TranslateContext) -> tuple[list[BackendTrafficPolicy], set[tuple[str, str, str]]]:
    """Returns policies targeting Services of the context, in discovery order, and all known service ports"""
    policies: dict[NamespacedName, BackendTrafficPolicy] = {}
    ports: set[tuple[str, str, str]] = set()
    listed: dict[str, list[BackendTrafficPolicy]] = {}
    for service in tctx.services.values():
        namespace = service.namespace()
        if namespace not in listed:
            try:
                listed[namespace] = client.list(BackendTrafficPolicy, namespace=namespace)
            except KubernetesError as e:
                logger.error("Failed to list BackendTrafficPolicies for Service %s: %s", service.namespaced_name, e)
                continue
        candidates = [policy for policy in listed[namespace] if policy.targets_service(service)]
        if not candidates:
            continue
        ports.update((namespace, service.name(), port.name) for port in service.ports)
        for policy in candidates:
            policies.setdefault(policy.namespaced_name, policy)
    return list(policies.values()), ports


def _claims(
    policies: list[BackendTrafficPolicy], services: set[NamespacedName], ports: set[tuple[str, str, str]]
) -> tuple[dict[PolicyTargetKey, list[BackendTrafficPolicy]], dict[NamespacedName, Condition]]:
    """Groups policies by the exact (Service, section) they target, invalid sections are reported separately"""
    claims: dict[PolicyTargetKey, list[BackendTrafficPolicy]] = {}
    invalid: dict[NamespacedName, Condition] = {}
    for policy in policies:
        namespace = policy.namespace()
        for ref in policy.target_refs:
            if ref.kind != Service.KIND or NamespacedName(namespace, ref.name) not in services:
                continue
            if ref.sectionName and (namespace, ref.name, ref.sectionName) not in ports:
                invalid.setdefault(
                    policy.namespaced_name,
                    policy_condition(
                        policy.generation,
                        False,
                        f"No section name {ref.sectionName} found in Service {namespace}/{ref.name}",
                    ),
                )
                continue
            claimants = claims.setdefault(ref.key(namespace, with_section=True), [])
            if policy not in claimants:
                claimants.append(policy)
    return claims, invalid


def _conflicts(claims: dict[PolicyTargetKey, list[BackendTrafficPolicy]]) -> dict[NamespacedName, Condition]:
    """
    First claimant of a target wins and the others are conflicted.
    When the claimants do not agree on priority, all of them are conflicted
    """
    conflicts: dict[NamespacedName, Condition] = {}
    for key, claimants in claims.items():
        message = _conflict_message(*key.namespaced_name)
        mixed_priorities = len({policy.priority for policy in claimants}) > 1
        losers = claimants if mixed_priorities else claimants[1:]
        for policy in losers:
            conflicts.setdefault(policy.namespaced_name, policy_conflict_condition(policy.generation, message))
    return conflicts


def process_backend_traffic_policy(client, tctx: TranslateContext, controller_name: Optional[str] = None):
    """
    Resolves BackendTrafficPolicies targeting Services of the context.
    Accepted policies are added to the context, every policy gets its condition for the ancestors of the context
    """
    policies, ports = _collect_policies(client, tctx)
    if not policies:
        return

    claims, invalid = _claims(policies, set(tctx.services), ports)
    conflicts = _conflicts(claims)

    for policy in policies:
        name = policy.namespaced_name
        condition = invalid.get(name) or conflicts.get(name)
        if condition is None:
            condition = policy_condition(policy.generation, True, ACCEPTED_MESSAGE)
            tctx.add_backend_traffic_policy(policy)
        else:
            logger.info("%s %s rejected: %s", policy.KIND, name, condition.message)

        status = policy.status
        if set_ancestors(status, tctx.route_parent_refs, condition, controller_name):
            tctx.enqueue_status(status_update(policy, status))
