"""Service related objects"""

from dataclasses import dataclass

from routebinder.kubernetes import KubernetesObject


@dataclass
class ServicePort:
    """Kubernetes Service Port object"""

    name: str
    port: int
    targetPort: int | str  # pylint: disable=invalid-name


class Service(KubernetesObject):
    """Kubernetes Service object"""

    KIND = "Service"
    RESOURCE = "services"

    @property
    def ports(self) -> list[ServicePort]:
        """Returns all ports of this service"""
        return [
            ServicePort(name=port.get("name", ""), port=port["port"], targetPort=port.get("targetPort", port["port"]))
            for port in self.model.spec.ports or []
        ]

    def has_port(self, number: int) -> bool:
        """Returns True if the service exposes the port number"""
        return any(port.port == number for port in self.ports)

    @property
    def is_external_name(self) -> bool:
        """Returns True for ExternalName services, which have no endpoints"""
        return self.model.spec.type == "ExternalName"
