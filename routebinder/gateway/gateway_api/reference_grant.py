"""ReferenceGrant object"""

from routebinder.gateway import GATEWAY_GROUP
from routebinder.kubernetes import KubernetesObject


class ReferenceGrant(KubernetesObject):
    """Authorizes references from other namespaces into the namespace of the grant"""

    GROUP = GATEWAY_GROUP
    VERSION = "v1beta1"
    KIND = "ReferenceGrant"
    RESOURCE = "referencegrants.gateway.networking.k8s.io"

    @property
    def grant_from(self) -> list[tuple[str, str, str]]:
        """Returns (group, kind, namespace) of every allowed source"""
        return [
            (entry.get("group") or "", entry["kind"], entry["namespace"]) for entry in self.model.spec.get("from") or []
        ]

    @property
    def grant_to(self) -> list[tuple[str, str, str]]:
        """Returns (group, kind, name) of every allowed target, empty name allows every object of the kind"""
        return [
            (entry.get("group") or "", entry["kind"], entry.get("name") or "") for entry in self.model.spec.to or []
        ]
