"""This module implements an KubernetesCLI interface using oc/kubectl binary commands."""

import logging
from functools import cached_property
from typing import Optional, TypeVar

import openshift_client as oc
from openshift_client import Context, OpenShiftPythonException

from routebinder.kubernetes import KubernetesObject
from routebinder.kubernetes.exceptions import KubernetesError, NotFoundError, ConflictError
from routebinder.resources import narrow

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=KubernetesObject)


def _error_text(error: OpenShiftPythonException) -> str:
    """Returns message of the exception together with stderr of the failed command"""
    text = error.msg
    if error.result is not None:
        text += "\n" + error.result.err()
    return text


def translate_error(error: OpenShiftPythonException, action: str) -> KubernetesError:
    """Converts openshift_client exception into KubernetesError subclass based on the server response"""
    text = _error_text(error)
    if "NotFound" in text or "not found" in text or "selected 0" in text:
        return NotFoundError(f"Unable to {action}: not found")
    if "Conflict" in text or "the object has been modified" in text:
        return ConflictError(f"Unable to {action}: {text}")
    return KubernetesError(f"Unable to {action}: {text}")


class KubernetesClient:
    """
    KubernetesClient is a helper class for invoking kubectl commands.
    Implements the read/list/status-write interface the controller core consumes
    """

    def __init__(self, project: str = None, api_url: str = None, token: str = None, kubeconfig_path: str = None):
        self._project = project
        self._api_url = api_url
        self._token = token
        self._kubeconfig_path = kubeconfig_path

    def change_project(self, project) -> "KubernetesClient":
        """Return new self with a different project"""
        return KubernetesClient(project, self._api_url, self._token, self._kubeconfig_path)

    @cached_property
    def context(self):
        """Prepare context for command execution"""
        context = Context()

        context.project_name = self._project
        context.api_server = self._api_url
        context.token = self._token
        context.kubeconfig_path = self._kubeconfig_path

        return context

    def _scoped(self, namespace: Optional[str]) -> "KubernetesClient":
        if namespace and namespace != self._project:
            return self.change_project(namespace)
        return self

    def get(self, kind: type[T], name: str, namespace: Optional[str] = None) -> T:
        """Returns single object of the kind, raises NotFoundError if it does not exist"""
        client = self._scoped(namespace if kind.NAMESPACED else None)
        with client.context:
            try:
                obj = oc.selector(f"{kind.RESOURCE}/{name}").object()
            except OpenShiftPythonException as e:
                raise translate_error(e, f"get {kind.KIND} {namespace}/{name}") from e
            return narrow(kind, obj.as_dict(), context=obj.context)

    def list(self, kind: type[T], namespace: Optional[str] = None, labels: dict[str, str] = None) -> list[T]:
        """Lists objects of the kind, from all namespaces if namespace is not given"""
        client = self._scoped(namespace)
        with client.context:
            try:
                selector = oc.selector(
                    kind.RESOURCE, labels=labels, all_namespaces=namespace is None and kind.NAMESPACED
                )
                objects = selector.objects()
            except OpenShiftPythonException as e:
                raise translate_error(e, f"list {kind.KIND}") from e
            return [narrow(kind, obj.as_dict(), context=obj.context) for obj in objects]

    def update_status(self, obj: KubernetesObject):
        """Replaces status subresource of the object, raises ConflictError on stale resourceVersion"""
        logger.debug("Replacing status of %s %s", obj.KIND, obj.namespaced_name)
        try:
            self.do_action("replace", "--subresource=status", "-f", "-", stdin_str=obj.as_json())
        except OpenShiftPythonException as e:
            raise translate_error(e, f"update status of {obj.KIND} {obj.namespaced_name}") from e

    def do_action(self, verb: str, *args, stdin_str=None, auto_raise: bool = True, parse_output: bool = False):
        """Run an oc command."""
        with self.context:
            result = oc.invoke(verb, args, stdin_str=stdin_str, auto_raise=auto_raise)
            if parse_output:
                return oc.APIObject(string_to_model=result.out())
            return result
