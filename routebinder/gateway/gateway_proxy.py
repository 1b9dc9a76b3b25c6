"""Vendor resources describing the data plane a Gateway is programmed into"""

from typing import Optional

from routebinder.kubernetes import KubernetesObject

VENDOR_GROUP = "apisix.apache.org"


class GatewayProxy(KubernetesObject):
    """GatewayProxy, referenced from Gateway spec.infrastructure.parametersRef"""

    GROUP = VENDOR_GROUP
    VERSION = "v1alpha1"
    KIND = "GatewayProxy"
    RESOURCE = "gatewayproxies.apisix.apache.org"

    @property
    def control_plane(self):
        """Returns spec.provider.controlPlane if the provider type is ControlPlane"""
        provider = self.model.spec.provider
        if provider.type != "ControlPlane":
            return None
        return provider.controlPlane or None

    @property
    def admin_key_secret(self) -> Optional[str]:
        """Returns name of the Secret holding the admin key"""
        control_plane = self.control_plane
        if control_plane is None or control_plane.auth.type != "AdminKey":
            return None
        return control_plane.auth.adminKey.valueFrom.secretKeyRef.name or None

    @property
    def service_name(self) -> Optional[str]:
        """Returns name of the control plane Service"""
        control_plane = self.control_plane
        if control_plane is None:
            return None
        return control_plane.service.name or None

    @property
    def status_addresses(self) -> list[str]:
        """Returns addresses to be reported in Gateway status"""
        return [address for address in self.model.spec.statusAddress or [] if address]


class PluginConfig(KubernetesObject):
    """PluginConfig, referenced from HTTPRoute ExtensionRef filters"""

    GROUP = VENDOR_GROUP
    VERSION = "v1alpha1"
    KIND = "PluginConfig"
    RESOURCE = "pluginconfigs.apisix.apache.org"
