"""Root conftest"""

import pytest

from routebinder.tests import FakeCluster, FakeProvider, RecordingUpdater, SyncUpdater, gateway, gateway_class


@pytest.fixture
def cluster():
    """Empty in-memory cluster"""
    return FakeCluster()


@pytest.fixture
def managed_cluster(cluster):
    """Cluster with a GatewayClass of this controller and a Gateway with a single HTTP listener"""
    cluster.add(gateway_class(), gateway())
    return cluster


@pytest.fixture
def updater(cluster):
    """Updater which applies status updates to the cluster right away"""
    return SyncUpdater(cluster)


@pytest.fixture
def recorder():
    """Updater which only records status updates"""
    return RecordingUpdater()


@pytest.fixture
def provider():
    """Provider remembering every programmed object"""
    return FakeProvider()
