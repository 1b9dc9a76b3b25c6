"""EndpointSlice object"""

from routebinder.kubernetes import KubernetesObject

SERVICE_NAME_LABEL = "kubernetes.io/service-name"


class EndpointSlice(KubernetesObject):
    """Kubernetes EndpointSlice, grouped to services by the service-name label"""

    GROUP = "discovery.k8s.io"
    KIND = "EndpointSlice"
    RESOURCE = "endpointslices.discovery.k8s.io"

    @property
    def service_name(self) -> str:
        """Returns name of the Service this slice belongs to"""
        return self.labels.get(SERVICE_NAME_LABEL, "")
