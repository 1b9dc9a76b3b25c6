"""Cross namespace reference checks based on ReferenceGrants"""

import logging
from typing import NamedTuple, Optional

from routebinder.config import settings
from routebinder.gateway.gateway_api.reference_grant import ReferenceGrant
from routebinder.kubernetes.exceptions import KubernetesError

logger = logging.getLogger(__name__)


class ReferenceGrantFrom(NamedTuple):
    """Object making the reference"""

    group: str
    kind: str
    namespace: str


class ObjectReference(NamedTuple):
    """Referenced object, namespace None means the namespace of the referencing object"""

    group: str
    kind: str
    name: str
    namespace: Optional[str] = None


def permitted(client, source: ReferenceGrantFrom, target: ObjectReference, enabled: bool = None) -> bool:
    """
    Returns True if the reference from source to target is allowed.
    References within one namespace are always allowed, cross namespace references need a matching ReferenceGrant
    in the target namespace. Listing failures deny the reference
    """
    if not target.namespace or target.namespace == source.namespace:
        return True

    if enabled is None:
        enabled = settings["reference_grant"]["enabled"]
    if not enabled:
        return False

    try:
        grants = client.list(ReferenceGrant, namespace=target.namespace)
    except KubernetesError as e:
        logger.warning("Unable to list ReferenceGrants in %s: %s", target.namespace, e)
        return False

    for grant in grants:
        if grant.namespace() != target.namespace:
            continue
        if tuple(source) not in grant.grant_from:
            continue
        for group, kind, name in grant.grant_to:
            if group == target.group and kind == target.kind and (not name or name == target.name):
                return True
    return False
