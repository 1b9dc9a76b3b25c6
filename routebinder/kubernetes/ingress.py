"""Kubernetes Ingress object"""

from routebinder.config import settings
from routebinder.gateway import ParentReference
from routebinder.kubernetes import KubernetesObject
from routebinder.kubernetes.exceptions import NotFoundError

DEFAULT_CLASS_ANNOTATION = "ingressclass.kubernetes.io/is-default-class"


class Ingress(KubernetesObject):
    """Represents Kubernetes Ingress object"""

    GROUP = "networking.k8s.io"
    KIND = "Ingress"
    RESOURCE = "ingresses.networking.k8s.io"

    @property
    def ingress_class_name(self) -> str:
        """Returns spec.ingressClassName"""
        return self.model.spec.ingressClassName or ""


class IngressClass(KubernetesObject):
    """Represents Kubernetes IngressClass, the parent of an Ingress in policy status"""

    GROUP = "networking.k8s.io"
    KIND = "IngressClass"
    RESOURCE = "ingressclasses.networking.k8s.io"
    NAMESPACED = False

    @property
    def controller(self) -> str:
        """Returns spec.controller"""
        return self.model.spec.controller or ""

    @property
    def is_default(self) -> bool:
        """Returns True if the class is annotated as the cluster default"""
        return (self.model.metadata.annotations or {}).get(DEFAULT_CLASS_ANNOTATION) == "true"

    @property
    def reference(self) -> ParentReference:
        """Returns reference used as policy ancestor for Ingresses of this class"""
        return ParentReference(group=self.GROUP, kind=self.KIND, name=self.name())


def get_ingress_class(client, name: str, controller_name: str = None) -> IngressClass:
    """
    Returns IngressClass of the name controlled by this controller, the default class if the name is empty.
    Raises NotFoundError when there is no such class
    """
    controller_name = controller_name or settings["controller_name"]
    if not name:
        for ingress_class in client.list(IngressClass):
            if ingress_class.is_default and ingress_class.controller == controller_name:
                return ingress_class
        raise NotFoundError("No default IngressClass found")

    ingress_class = client.get(IngressClass, name)
    if ingress_class.controller != controller_name:
        raise NotFoundError(f"IngressClass {name} is not controlled by {controller_name}")
    return ingress_class
