"""Module containing Secret related classes"""

import base64
from typing import Optional

from routebinder.kubernetes import KubernetesObject


class Secret(KubernetesObject):
    """Kubernetes Secret object"""

    KIND = "Secret"
    RESOURCE = "secrets"

    def __getitem__(self, name):
        return base64.b64decode(self.model.data[name]).decode("utf-8")

    def __contains__(self, name):
        return name in (self.model.data or {})

    def tls_problem(self) -> Optional[str]:
        """Returns description of what is wrong with a TLS secret, None if it holds a PEM key pair"""
        for key in ("tls.crt", "tls.key"):
            if key not in self:
                return f"Missing {key}"
            content = self[key]
            if "-----BEGIN " not in content or "-----END " not in content:
                return f"Malformed PEM {key}"
        return None
