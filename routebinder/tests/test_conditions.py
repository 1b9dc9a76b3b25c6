"""Tests for merging of status conditions"""

from routebinder.conditions import Condition, ConditionType, Reason, ReasonError, find_condition
from routebinder.conditions import set_route_condition_accepted, set_route_condition_resolved_refs
from routebinder.conditions import set_status_condition, verify_conditions
from routebinder.tests import check_condition

OLD_TIME = "2020-01-01T00:00:00Z"


def accepted(status="True", reason=Reason.ACCEPTED, message="", generation=1):
    """Accepted condition"""
    return Condition(
        type=ConditionType.ACCEPTED, status=status, reason=reason, message=message, observedGeneration=generation
    )


def test_transition_time_kept_without_status_change():
    """Tests that lastTransitionTime only changes together with the status"""
    conditions = [{**accepted(message="old").stamped(), "lastTransitionTime": OLD_TIME}]

    set_status_condition(conditions, accepted(message="new", generation=2))
    assert len(conditions) == 1
    assert conditions[0]["lastTransitionTime"] == OLD_TIME
    assert conditions[0]["message"] == "new"
    assert conditions[0]["observedGeneration"] == 2

    set_status_condition(conditions, accepted(status="False", reason=Reason.INVALID, generation=2))
    assert conditions[0]["lastTransitionTime"] != OLD_TIME
    assert check_condition(conditions[0], "Accepted", "False", "Invalid")


def test_verify_conditions():
    """Tests that only conditions which would change something are reported as needing a write"""
    conditions = [accepted(message="msg", generation=2).stamped()]

    assert not verify_conditions(conditions, accepted(message="msg", generation=2))
    assert not verify_conditions(conditions, accepted(message="older", generation=1))
    assert verify_conditions(conditions, accepted(message="changed", generation=2))
    assert verify_conditions(conditions, accepted(generation=3, message="msg"))
    assert verify_conditions([], accepted())


def test_rejected_route_is_not_flipped_back():
    """Tests that Accepted=False computed from listeners is not overwritten by a later Accepted=True"""
    parent = {"conditions": [accepted(status="False", reason=Reason.NOT_ALLOWED_BY_LISTENERS).stamped()]}

    set_route_condition_accepted(parent, 1, True, "Route is accepted")
    condition = find_condition(parent["conditions"], "Accepted")
    assert check_condition(condition, "Accepted", "False", "NotAllowedByListeners")


def test_no_matching_hostname_reason():
    """Tests that hostname failure is reported with its own reason"""
    parent: dict = {}
    set_route_condition_accepted(parent, 1, False, "no matching hostnames")
    assert check_condition(parent["conditions"][0], "Accepted", "False", "NoMatchingListenerHostname")


def test_resolved_refs_reason_from_error():
    """Tests that ResolvedRefs takes the reason from ReasonError and falls back to ResolvedRefs otherwise"""
    parent: dict = {}
    set_route_condition_resolved_refs(parent, 1, ReasonError(Reason.BACKEND_NOT_FOUND, "Service default/x not found"))
    assert check_condition(parent["conditions"][0], "ResolvedRefs", "False", "BackendNotFound", "not found")

    parent = {}
    set_route_condition_resolved_refs(parent, 1, ValueError("port is required"))
    assert check_condition(parent["conditions"][0], "ResolvedRefs", "False", "ResolvedRefs", "port is required")

    parent = {}
    set_route_condition_resolved_refs(parent, 1, None)
    assert check_condition(parent["conditions"][0], "ResolvedRefs", "True", "ResolvedRefs")
