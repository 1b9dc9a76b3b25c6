"""Kubernetes common objects"""

from dataclasses import dataclass, field
from typing import Optional, Literal, NamedTuple

from openshift_client import APIObject

from routebinder.utils import primitive


class NamespacedName(NamedTuple):
    """Namespace and name of an object, namespace is empty for cluster scoped objects"""

    namespace: str
    name: str

    def __str__(self):
        if not self.namespace:
            return self.name
        return f"{self.namespace}/{self.name}"


class NamespacedNameKind(NamedTuple):
    """Namespace, name and kind of an object"""

    namespace: str
    name: str
    kind: str

    @property
    def namespaced_name(self) -> NamespacedName:
        """Returns identity without the kind"""
        return NamespacedName(self.namespace, self.name)

    def __str__(self):
        return f"{self.kind}/{self.namespace}/{self.name}"


class GroupVersionKind(NamedTuple):
    """Fully qualified type of kubernetes object"""

    group: str
    version: str
    kind: str

    def __str__(self):
        if not self.group:
            return f"{self.version}, Kind={self.kind}"
        return f"{self.group}/{self.version}, Kind={self.kind}"


class KubernetesObject(APIObject):
    """
    APIObject with a known kind.
    Subclasses form the closed set of resources this controller understands, see `routebinder.resources`
    """

    GROUP = ""
    VERSION = "v1"
    KIND = ""
    # Resource name used by kubectl, e.g. "httproutes.gateway.networking.k8s.io"
    RESOURCE = ""
    NAMESPACED = True

    @classmethod
    def gvk(cls) -> GroupVersionKind:
        """Returns GroupVersionKind of this class"""
        return GroupVersionKind(cls.GROUP, cls.VERSION, cls.KIND)

    @classmethod
    def api_version(cls) -> str:
        """Returns apiVersion used in manifests"""
        if not cls.GROUP:
            return cls.VERSION
        return f"{cls.GROUP}/{cls.VERSION}"

    @classmethod
    def from_spec(cls, name, namespace=None, spec=None, labels=None, **fields):
        """Creates new instance of this kind from parts of the manifest"""
        model: dict = {
            "apiVersion": cls.api_version(),
            "kind": cls.KIND,
            "metadata": {"name": name},
        }
        if namespace is not None:
            model["metadata"]["namespace"] = namespace
        if labels is not None:
            model["metadata"]["labels"] = labels
        if spec is not None:
            model["spec"] = spec
        model.update(fields)
        return cls(model)

    @property
    def namespaced_name(self) -> NamespacedName:
        """Returns namespace and name of this object"""
        return NamespacedName(self.namespace("") or "", self.name())

    @property
    def namespaced_name_kind(self) -> NamespacedNameKind:
        """Returns namespace, name and kind of this object"""
        return NamespacedNameKind(self.namespace("") or "", self.name(), self.KIND)

    @property
    def generation(self) -> int:
        """Returns metadata.generation, 0 if not yet set by the server"""
        return self.model.metadata.generation or 0

    @property
    def uid(self) -> Optional[str]:
        """Returns metadata.uid"""
        return self.model.metadata.uid or None

    @property
    def labels(self) -> dict[str, str]:
        """Returns labels of this object"""
        return primitive(self.model.metadata.labels or {})

    @property
    def status(self) -> dict:
        """Returns status of this object as a plain dictionary"""
        return primitive(self.model.status or {})

    def copy(self):
        """Returns deep copy of this object"""
        return self.__class__(primitive(self.model), context=self.context)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.namespaced_name}>"


@dataclass
class MatchExpression:
    """
    Data class intended for defining K8 Label Selector expressions.
    Used by selector.matchExpressions API key identity.
    """

    operator: Literal["In", "NotIn", "Exists", "DoesNotExist"]
    values: list[str]
    key: str = "group"

    def matches(self, labels: dict[str, str]) -> bool:
        """Returns True if the labels satisfy this expression"""
        if self.operator == "In":
            return self.key in labels and labels[self.key] in self.values
        if self.operator == "NotIn":
            return self.key not in labels or labels[self.key] not in self.values
        if self.operator == "Exists":
            return self.key in labels
        if self.operator == "DoesNotExist":
            return self.key not in labels
        raise ValueError(f"Unknown label selector operator {self.operator}")


@dataclass
class Selector:
    """Dataclass for specifying selectors based on expressions and/or labels, both are ANDed"""

    # pylint: disable=invalid-name
    matchExpressions: Optional[list[MatchExpression]] = field(default=None, kw_only=True)
    matchLabels: Optional[dict[str, str]] = field(default=None, kw_only=True)

    @classmethod
    def from_model(cls, model) -> "Selector":
        """Creates Selector from the metav1.LabelSelector part of a model"""
        expressions = None
        if model.get("matchExpressions"):
            expressions = [
                MatchExpression(operator=expr["operator"], values=list(expr.get("values") or []), key=expr["key"])
                for expr in model["matchExpressions"]
            ]
        labels = dict(model["matchLabels"]) if model.get("matchLabels") else None
        return cls(matchExpressions=expressions, matchLabels=labels)

    def matches(self, labels: dict[str, str]) -> bool:
        """Returns True if labels are selected, empty selector selects everything"""
        for key, value in (self.matchLabels or {}).items():
            if labels.get(key) != value:
                return False
        return all(expression.matches(labels) for expression in self.matchExpressions or [])
