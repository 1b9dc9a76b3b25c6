"""Tests for the asynchronous status writer"""

import threading

import pytest

from routebinder.gateway.gateway_api.gateway import Gateway
from routebinder.gateway.gateway_api.route import HTTPRoute
from routebinder.kubernetes import NamespacedName
from routebinder.status import NO_OP, Update, UpdateHandler, replace_status, status_equal
from routebinder.tests import route

NAME = NamespacedName("default", "route")
STATUS = {"parents": [{"controllerName": "example.com/controller", "conditions": []}]}


@pytest.fixture
def handler(cluster):
    """Handler writing into the cluster which contains the route"""
    cluster.add(route())
    return UpdateHandler(cluster)


def test_write(cluster, handler):
    """Tests that the mutated status is written with the uid of the live object"""
    handler.process(Update(NAME, HTTPRoute, replace_status(HTTPRoute, STATUS)))

    assert len(cluster.writes) == 1
    assert cluster.writes[0].uid == "httproute-default-route"
    assert cluster.status_of(HTTPRoute, "route", "default") == STATUS


@pytest.mark.parametrize("result", [NO_OP, None], ids=["no-op", "none"])
def test_no_op(cluster, handler, result):
    """Tests that mutators returning no-op never write"""
    handler.process(Update(NAME, HTTPRoute, lambda obj: result))
    assert not cluster.writes


def test_equal_status_not_written(cluster, handler):
    """Tests that status differing only in transition times is not written"""
    status = {"conditions": [{"type": "Accepted", "status": "True", "lastTransitionTime": "2020-01-01T00:00:00Z"}]}
    cluster.add(route(status=status))
    changed = {"conditions": [{"type": "Accepted", "status": "True", "lastTransitionTime": "2024-01-01T00:00:00Z"}]}

    handler.process(Update(NAME, HTTPRoute, replace_status(HTTPRoute, changed)))
    assert not cluster.writes


def test_conflict_retry(cluster, handler):
    """Tests that conflicting writes are retried with the live object"""
    cluster.conflicts = 2
    handler.process(Update(NAME, HTTPRoute, replace_status(HTTPRoute, STATUS)))

    assert cluster.conflicts == 0
    assert len(cluster.writes) == 1
    assert cluster.writes[0].uid == "httproute-default-route"


def test_conflict_give_up(cluster, handler):
    """Tests that the update is dropped after too many conflicts"""
    cluster.conflicts = 10
    handler.process(Update(NAME, HTTPRoute, replace_status(HTTPRoute, STATUS)))

    assert cluster.conflicts == 6
    assert not cluster.writes


def test_not_found(cluster, handler):
    """Tests that update of a deleted object is skipped"""
    handler.process(Update(NamespacedName("default", "missing"), HTTPRoute, replace_status(HTTPRoute, STATUS)))
    assert not cluster.writes


def test_unsupported_object(cluster, handler, caplog):
    """Tests that mutator built for other kind does not write and is logged"""
    handler.process(Update(NAME, HTTPRoute, replace_status(Gateway, STATUS)))

    assert not cluster.writes
    assert "Status mutator failed" in caplog.text


def test_status_snapshot(cluster, handler):
    """Tests that changes of the status after the update was created are not written"""
    status = {"parents": []}
    update = Update(NAME, HTTPRoute, replace_status(HTTPRoute, status))
    status["parents"].append({"controllerName": "late"})

    handler.process(update)
    assert cluster.status_of(HTTPRoute, "route", "default") == {"parents": []}


def test_worker(cluster, handler):
    """Tests that updates sent through the writer are applied by the worker thread"""
    stop = threading.Event()
    handler.start(stop)
    try:
        writer = handler.writer()
        writer.update(Update(NAME, HTTPRoute, replace_status(HTTPRoute, STATUS)))
        writer.update(Update(NAME, HTTPRoute, lambda obj: NO_OP))
        handler.join()
    finally:
        stop.set()

    assert len(cluster.writes) == 1


def test_worker_survives_errors(cluster, handler):
    """Tests that unexpected error in a mutator does not stop the worker"""

    def _fail(obj):
        raise ValueError("boom")

    stop = threading.Event()
    handler.start(stop)
    try:
        writer = handler.writer()
        writer.update(Update(NAME, HTTPRoute, _fail))
        writer.update(Update(NAME, HTTPRoute, replace_status(HTTPRoute, STATUS)))
        handler.join()
    finally:
        stop.set()

    assert len(cluster.writes) == 1


@pytest.mark.parametrize(
    "first, second, expected",
    [
        pytest.param({}, {}, True, id="empty"),
        pytest.param(None, {}, True, id="none"),
        pytest.param({"a": [{"lastTransitionTime": "x", "b": 1}]}, {"a": [{"b": 1}]}, True, id="nested-time"),
        pytest.param({"a": [{"b": 1}]}, {"a": [{"b": 2}]}, False, id="nested-value"),
        pytest.param({"a": 1}, {"a": 1, "b": 2}, False, id="extra-key"),
    ],
)
def test_status_equal(first, second, expected):
    """Tests comparison of statuses ignoring transition times"""
    assert status_equal(first, second) == expected
