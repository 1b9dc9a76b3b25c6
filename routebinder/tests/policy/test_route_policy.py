"""Tests for HTTPRoutePolicy resolution and cleanup"""

import pytest

from routebinder.context import TranslateContext
from routebinder.gateway import GATEWAY_GROUP, ParentReference
from routebinder.gateway.gateway_api.route import HTTPRoute
from routebinder.kubernetes import NamespacedName
from routebinder.kubernetes.ingress import DEFAULT_CLASS_ANNOTATION, Ingress, IngressClass
from routebinder.policy import set_ancestors, policy_condition
from routebinder.policy.route_policy import HTTPRoutePolicy, check_policies_conflict, find_policies_which_target_rule
from routebinder.policy.route_policy import process_ingress_route_policies, process_route_policies
from routebinder.policy.route_policy import update_ingress_policies_on_deleting, update_route_policies_on_deleting
from routebinder.tests import CONTROLLER, SyncUpdater, build, http_route_policy, parent_ref, route, target_ref
from routebinder.tests import check_condition

ROUTE = "HTTPRoute"


def rule(name):
    """Named rule without backends"""
    return {"name": name, "backendRefs": []}


def ancestors_of(cluster, name):
    """Returns status.ancestors of the policy"""
    return cluster.status_of(HTTPRoutePolicy, name, "default").get("ancestors") or []


@pytest.mark.parametrize(
    "priorities, expected",
    [
        pytest.param([], False, id="none"),
        pytest.param([5], False, id="single"),
        pytest.param([5, 5], False, id="same"),
        pytest.param([None, None], False, id="unset"),
        pytest.param([5, 10], True, id="different"),
        pytest.param([5, None], True, id="one-unset"),
    ],
)
def test_check_policies_conflict(priorities, expected):
    """Tests that policies conflict exactly when their priorities differ"""
    policies = [http_route_policy(f"p{i}", priority=priority) for i, priority in enumerate(priorities)]
    assert check_policies_conflict(policies) == expected


def test_find_policies_which_target_rule():
    """Tests that policies without section target every rule and policies with section only that rule"""
    whole = http_route_policy("whole")
    first = http_route_policy("first", targets=[target_ref("route", ROUTE, GATEWAY_GROUP, "first")])
    ingress = http_route_policy("ingress", targets=[target_ref("route", "Ingress", "networking.k8s.io")])
    policies = [whole, first, ingress]

    assert find_policies_which_target_rule("first", ROUTE, policies) == [whole, first]
    assert find_policies_which_target_rule("second", ROUTE, policies) == [whole]
    assert find_policies_which_target_rule(None, ROUTE, policies) == [whole]


def test_accepted(cluster):
    """Tests that single policy is accepted for every parent of the route"""
    obj = route(parents=[parent_ref(), parent_ref("other", namespace="infra")], rules=[rule("first")])
    cluster.add(obj, http_route_policy("policy", priority=5))
    tctx = TranslateContext()

    process_route_policies(cluster, tctx, obj)
    tctx.flush_status(SyncUpdater(cluster))

    ancestors = ancestors_of(cluster, "policy")
    assert [ancestor["ancestorRef"]["namespace"] for ancestor in ancestors] == ["default", "infra"]
    assert all(ancestor["controllerName"] == CONTROLLER for ancestor in ancestors)
    assert check_condition(ancestors[0]["conditions"][0], "Accepted", "True", "Accepted")
    assert list(tctx.http_route_policies) == [NamespacedName("default", "policy")]


def test_conflict(cluster):
    """Tests that policies targeting the same rule with different priorities are all conflicted"""
    obj = route(rules=[rule("first"), rule("second")])
    cluster.add(
        obj,
        http_route_policy("five", priority=5, targets=[target_ref("route", ROUTE, GATEWAY_GROUP, "first")]),
        http_route_policy("ten", priority=10),
        http_route_policy("unrelated", priority=1, targets=[target_ref("other", ROUTE, GATEWAY_GROUP)]),
    )
    tctx = TranslateContext()

    process_route_policies(cluster, tctx, obj)
    tctx.flush_status(SyncUpdater(cluster))

    for name in ("five", "ten"):
        condition = ancestors_of(cluster, name)[0]["conditions"][0]
        assert check_condition(condition, "Accepted", "False", "Conflicted", "conflict with others")
    assert not ancestors_of(cluster, "unrelated")
    assert not tctx.http_route_policies


def test_idempotent(cluster):
    """Tests that resolving policies of unchanged route writes nothing the second time"""
    obj = route(rules=[rule("first")])
    cluster.add(obj, http_route_policy("policy"))
    for _ in range(2):
        tctx = TranslateContext()
        process_route_policies(cluster, tctx, obj)
        tctx.flush_status(SyncUpdater(cluster))
    assert len(cluster.writes) == 1


def test_prune_on_route_deletion(cluster):
    """Tests that ancestors of policies targeting a deleted route are removed"""
    status: dict = {}
    set_ancestors(status, [ParentReference("gateway", namespace="default")], policy_condition(1, True, ""))
    cluster.add(http_route_policy("policy", status=status))
    updater = SyncUpdater(cluster)

    update_route_policies_on_deleting(cluster, updater, NamespacedName("default", "route"))
    assert len(updater.updates) == 1
    assert not ancestors_of(cluster, "policy")


def test_no_prune_while_route_exists(cluster):
    """Tests that ancestors still referenced by an existing target route are kept"""
    status: dict = {}
    set_ancestors(status, [ParentReference("gateway", namespace="default")], policy_condition(1, True, ""))
    cluster.add(route(), http_route_policy("policy", status=status))
    updater = SyncUpdater(cluster)

    update_route_policies_on_deleting(cluster, updater, NamespacedName("default", "route"))
    assert not updater.updates
    assert len(ancestors_of(cluster, "policy")) == 1


def ingress_class(name="apisix", default=False):
    """IngressClass of this controller"""
    annotations = {DEFAULT_CLASS_ANNOTATION: "true"} if default else {}
    obj = build(IngressClass, name, spec={"controller": CONTROLLER})
    obj.model.metadata["annotations"] = annotations
    return obj


def ingress_policy(name, priority=None, status=None):
    """HTTPRoutePolicy targeting the default Ingress"""
    fields = {"status": status} if status else {}
    return http_route_policy(
        name, targets=[target_ref("ingress", Ingress.KIND, Ingress.GROUP)], priority=priority, **fields
    )


def test_ingress_conflict(cluster):
    """Tests that all policies targeting an Ingress with different priorities are conflicted"""
    ingress = build(Ingress, "ingress", "default", spec={"ingressClassName": "apisix"})
    cluster.add(ingress, ingress_policy("first", 1), ingress_policy("second", 2))
    tctx = TranslateContext()
    tctx.add_route_parent_ref(ingress_class().reference)

    process_ingress_route_policies(cluster, tctx, ingress)
    tctx.flush_status(SyncUpdater(cluster))

    for name in ("first", "second"):
        ancestor = ancestors_of(cluster, name)[0]
        assert ancestor["ancestorRef"]["kind"] == "IngressClass"
        assert check_condition(ancestor["conditions"][0], "Accepted", "False", "Conflicted", "Ingress")


@pytest.mark.parametrize("class_name", ["apisix", ""], ids=["named", "default"])
def test_ingress_deletion(cluster, class_name):
    """Tests that ancestors other than the class of a still existing Ingress are pruned"""
    status: dict = {}
    stale = ParentReference("old", group=IngressClass.GROUP, kind=IngressClass.KIND)
    set_ancestors(status, [ingress_class().reference, stale], policy_condition(1, True, ""))
    cluster.add(
        ingress_class(default=True),
        build(Ingress, "ingress", "default", spec={"ingressClassName": class_name}),
        ingress_policy("policy", status=status),
    )

    update_ingress_policies_on_deleting(cluster, SyncUpdater(cluster), NamespacedName("default", "ingress"))
    assert [ancestor["ancestorRef"]["name"] for ancestor in ancestors_of(cluster, "policy")] == ["apisix"]


def test_routes_of_other_names_untouched(cluster):
    """Tests that deletion of a route does not touch policies targeting other routes"""
    other = http_route_policy("other", targets=[target_ref("other", HTTPRoute.KIND, GATEWAY_GROUP)])
    cluster.add(other)
    updater = SyncUpdater(cluster)
    update_route_policies_on_deleting(cluster, updater, NamespacedName("default", "route"))
    assert not updater.updates
