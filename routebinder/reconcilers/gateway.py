"""Reconciler of Gateways"""

import logging
from typing import Optional

from routebinder.attachment import listener_statuses
from routebinder.conditions import accepted_message, set_gateway_condition_accepted, set_gateway_condition_programmed
from routebinder.config import settings
from routebinder.context import TranslateContext
from routebinder.gateway.gateway_api.gateway import Gateway, GatewayClass
from routebinder.kubernetes import NamespacedName
from routebinder.kubernetes.exceptions import KubernetesError, NotFoundError
from routebinder.kubernetes.secret import Secret
from routebinder.provider import Provider, ProviderError
from routebinder.readiness import ReadinessManager
from routebinder.reconcilers import GatewayProxyError, process_gateway_proxy
from routebinder.status import Update, Updater, replace_status

logger = logging.getLogger(__name__)


class GatewayReconciler:
    """Programs Gateways of this controller and reports their and their listeners' status"""

    # pylint: disable=too-many-arguments
    def __init__(
        self,
        client,
        provider: Provider,
        updater: Updater,
        readiness: Optional[ReadinessManager] = None,
        controller_name: Optional[str] = None,
    ):
        self.client = client
        self.provider = provider
        self.updater = updater
        self.readiness = readiness
        self.controller_name = controller_name

    def reconcile(self, name: NamespacedName):
        """Reconciles Gateway of the name"""
        try:
            self._reconcile(name)
        finally:
            if self.readiness is not None:
                self.readiness.done(Gateway, name)

    def check_gateway_class(self, gateway: Gateway) -> bool:
        """Returns True if the GatewayClass of the Gateway belongs to this controller"""
        try:
            gateway_class = self.client.get(GatewayClass, gateway.gateway_class_name)
        except NotFoundError:
            logger.warning("GatewayClass %s of %r does not exist", gateway.gateway_class_name, gateway)
            return False
        return gateway_class.controller_name == (self.controller_name or settings["controller_name"])

    def process_listener_secrets(self, tctx: TranslateContext, gateway: Gateway):
        """Adds TLS Secrets of all listeners, problems with them are reported in listener status"""
        for listener in gateway.listeners:
            for ref in listener.certificate_refs:
                if (ref.get("kind") or Secret.KIND) != Secret.KIND:
                    continue
                namespace = ref.get("namespace") or gateway.namespace()
                try:
                    tctx.add_secret(self.client.get(Secret, ref["name"], namespace))
                except NotFoundError:
                    logger.warning("Secret %s/%s of listener %s does not exist", namespace, ref["name"], listener.name)
                    break

    def _reconcile(self, name: NamespacedName):
        try:
            gateway = self.client.get(Gateway, name.name, name.namespace)
        except NotFoundError:
            logger.info("Gateway %s was deleted", name)
            self.provider.delete(Gateway.from_spec(name.name, name.namespace))
            return
        if not self.check_gateway_class(gateway):
            return

        tctx = TranslateContext()
        accepted, message = True, accepted_message("gateway")

        self.process_listener_secrets(tctx, gateway)
        try:
            process_gateway_proxy(self.client, tctx, gateway, gateway)
        except (KubernetesError, GatewayProxyError) as e:
            accepted, message = False, str(e)

        addresses = None
        proxy = tctx.gateway_proxies.get(gateway.namespaced_name_kind)
        if proxy is None:
            accepted, message = False, "gateway proxy not found"
        else:
            addresses = [{"value": address} for address in proxy.status_addresses]

        listeners = listener_statuses(self.client, gateway)

        try:
            self.provider.update(tctx, gateway)
        except ProviderError as e:
            accepted, message = False, str(e)

        status = gateway.status
        changed = set_gateway_condition_accepted(status, gateway.generation, accepted, message)
        if set_gateway_condition_programmed(status, gateway.generation, True, "Programmed"):
            changed = True
        if addresses and addresses != status.get("addresses"):
            status["addresses"] = addresses
            changed = True
        if listeners != status.get("listeners"):
            status["listeners"] = listeners
            changed = True

        if changed:
            self.updater.update(Update(gateway.namespaced_name, Gateway, replace_status(Gateway, status)))
        tctx.flush_status(self.updater)
