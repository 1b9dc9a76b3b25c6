"""Interface of the data plane side, which translates populated contexts into proxy configuration"""

from abc import ABC, abstractmethod

from routebinder.context import TranslateContext
from routebinder.kubernetes import KubernetesObject


class Provider(ABC):
    """Receives every accepted primary object together with everything it references"""

    @abstractmethod
    def update(self, tctx: TranslateContext, obj: KubernetesObject):
        """Programs the object into the data plane"""

    @abstractmethod
    def delete(self, obj: KubernetesObject):
        """Removes the object from the data plane"""


class ProviderError(Exception):
    """Data plane refused or failed to apply the configuration"""
