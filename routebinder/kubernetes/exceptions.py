"""Errors raised by the cluster client"""


class KubernetesError(Exception):
    """Common exception for errors returned by the Kubernetes API"""


class NotFoundError(KubernetesError):
    """Requested object does not exist"""


class ConflictError(KubernetesError):
    """Optimistic concurrency failure, the object was modified since it was read"""


class UnexpectedKindError(KubernetesError):
    """Server returned object of a different kind than requested"""
