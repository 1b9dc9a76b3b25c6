"""Module containing all gateway classes"""

from typing import Optional

from routebinder.gateway import Referencable, ParentReference, Listener, GATEWAY_GROUP, KIND_GATEWAY
from routebinder.kubernetes import KubernetesObject


class GatewayClass(KubernetesObject):
    """GatewayClass, decides which controller owns a Gateway"""

    GROUP = GATEWAY_GROUP
    KIND = "GatewayClass"
    RESOURCE = "gatewayclasses.gateway.networking.k8s.io"
    NAMESPACED = False

    @property
    def controller_name(self) -> str:
        """Returns spec.controllerName"""
        return self.model.spec.controllerName or ""


class Gateway(KubernetesObject, Referencable):
    """Gateway object"""

    GROUP = GATEWAY_GROUP
    KIND = KIND_GATEWAY
    RESOURCE = "gateways.gateway.networking.k8s.io"

    @property
    def gateway_class_name(self) -> str:
        """Returns spec.gatewayClassName"""
        return self.model.spec.gatewayClassName or ""

    @property
    def listeners(self) -> list[Listener]:
        """Returns parsed listeners of this Gateway"""
        return [Listener.from_model(listener) for listener in self.model.spec.listeners or []]

    def get_listener(self, name: str) -> Optional[Listener]:
        """Returns listener with the name, None if there is no such listener"""
        for listener in self.listeners:
            if listener.name == name:
                return listener
        return None

    @property
    def parameters_ref(self) -> Optional[dict]:
        """Returns spec.infrastructure.parametersRef"""
        ref = self.model.spec.infrastructure.parametersRef
        if not ref:
            return None
        return dict(ref)

    @property
    def reference(self) -> ParentReference:
        return ParentReference(name=self.name(), namespace=self.namespace())
