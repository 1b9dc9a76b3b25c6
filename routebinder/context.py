"""Per reconciliation accumulator of every object discovered while resolving one primary object"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterator, TYPE_CHECKING

from routebinder.gateway import ParentReference
from routebinder.kubernetes import KubernetesObject, NamespacedName, NamespacedNameKind

if TYPE_CHECKING:
    from routebinder.status import Update, Updater


class ParentGraph:
    """Child to parent edges, used for reverse lookups from a dependency to the objects using it"""

    def __init__(self):
        self._parents: dict[NamespacedNameKind, list[NamespacedNameKind]] = defaultdict(list)

    def add(self, child: NamespacedNameKind, parent: NamespacedNameKind):
        """Adds edge, adding the same edge twice has no effect"""
        if parent not in self._parents[child]:
            self._parents[child].append(parent)

    def parents(self, child: NamespacedNameKind) -> list[NamespacedNameKind]:
        """Returns direct parents of the child"""
        return list(self._parents.get(child, []))

    def children(self, parent: NamespacedNameKind) -> list[NamespacedNameKind]:
        """Returns every child directly referencing the parent"""
        return [child for child, parents in self._parents.items() if parent in parents]

    def ancestors(self, child: NamespacedNameKind) -> list[NamespacedNameKind]:
        """Returns all transitive parents in breadth first order"""
        result: list[NamespacedNameKind] = []
        pending = self.parents(child)
        while pending:
            current = pending.pop(0)
            if current in result or current == child:
                continue
            result.append(current)
            pending.extend(self.parents(current))
        return result

    def __contains__(self, child):
        return child in self._parents

    def __iter__(self) -> Iterator[NamespacedNameKind]:
        return iter(list(self._parents))

    def __len__(self):
        return len(self._parents)


@dataclass
class TranslateContext:
    """
    Mutable bag owned by a single reconciliation.
    Maps are keyed by namespaced identity so discovering the same object twice overwrites the previous entry
    """

    # pylint: disable=too-many-instance-attributes
    secrets: dict[NamespacedName, KubernetesObject] = field(default_factory=dict)
    services: dict[NamespacedName, KubernetesObject] = field(default_factory=dict)
    endpoint_slices: dict[NamespacedName, list[KubernetesObject]] = field(default_factory=dict)
    plugin_configs: dict[NamespacedName, KubernetesObject] = field(default_factory=dict)
    gateway_proxies: dict[NamespacedNameKind, KubernetesObject] = field(default_factory=dict)
    backend_traffic_policies: dict[NamespacedName, KubernetesObject] = field(default_factory=dict)
    http_route_policies: dict[NamespacedName, KubernetesObject] = field(default_factory=dict)
    backend_refs: list[dict] = field(default_factory=list)
    route_parent_refs: list[ParentReference] = field(default_factory=list)
    resource_parent_refs: ParentGraph = field(default_factory=ParentGraph)
    status_updates: list["Update"] = field(default_factory=list)

    def add_secret(self, secret: KubernetesObject):
        """Stores Secret"""
        self.secrets[secret.namespaced_name] = secret

    def add_service(self, service: KubernetesObject):
        """Stores Service"""
        self.services[service.namespaced_name] = service

    def add_endpoint_slices(self, service_name: NamespacedName, slices: list[KubernetesObject]):
        """Stores EndpointSlices of the Service"""
        self.endpoint_slices[service_name] = list(slices)

    def add_plugin_config(self, plugin_config: KubernetesObject):
        """Stores PluginConfig"""
        self.plugin_configs[plugin_config.namespaced_name] = plugin_config

    def add_gateway_proxy(self, owner: NamespacedNameKind, gateway_proxy: KubernetesObject):
        """Stores GatewayProxy used by the owner (Gateway or IngressClass)"""
        self.gateway_proxies[owner] = gateway_proxy

    def add_backend_traffic_policy(self, policy: KubernetesObject):
        """Stores accepted BackendTrafficPolicy"""
        self.backend_traffic_policies[policy.namespaced_name] = policy

    def add_http_route_policy(self, policy: KubernetesObject):
        """Stores accepted HTTPRoutePolicy"""
        self.http_route_policies[policy.namespaced_name] = policy

    def add_route_parent_ref(self, parent_ref: ParentReference):
        """Stores parent reference through which the primary object is attached, duplicates are ignored"""
        if not any(parent_ref.value_equal(existing) for existing in self.route_parent_refs):
            self.route_parent_refs.append(parent_ref)

    def add_parent(self, child: KubernetesObject, parent: KubernetesObject):
        """Records that the child is used by the parent"""
        self.resource_parent_refs.add(child.namespaced_name_kind, parent.namespaced_name_kind)

    def enqueue_status(self, update: "Update"):
        """Queues status write, nothing is written until flush_status is called"""
        self.status_updates.append(update)

    def flush_status(self, updater: "Updater"):
        """Hands all queued status writes to the updater"""
        updates, self.status_updates = self.status_updates, []
        for update in updates:
            updater.update(update)
