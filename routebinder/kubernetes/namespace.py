"""Namespace object"""

from routebinder.kubernetes import KubernetesObject


class Namespace(KubernetesObject):
    """Kubernetes Namespace, only its labels are of interest"""

    KIND = "Namespace"
    RESOURCE = "namespaces"
    NAMESPACED = False
