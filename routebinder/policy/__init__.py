"""Contains Base class for policies and the ancestor status bookkeeping shared by all of them"""

import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, TYPE_CHECKING

from routebinder.conditions import Condition, ConditionType, Reason, condition_status
from routebinder.conditions import verify_conditions, set_status_condition
from routebinder.config import settings
from routebinder.gateway import ParentReference
from routebinder.kubernetes import KubernetesObject, NamespacedName
from routebinder.status import Update, replace_status

if TYPE_CHECKING:
    from routebinder.status import Updater

logger = logging.getLogger(__name__)


class PolicyTargetKey(NamedTuple):
    """Canonical identity of a policy target, optionally narrowed to a section (rule name, port name)"""

    namespaced_name: NamespacedName
    group: str
    kind: str
    section_name: Optional[str] = None

    def __str__(self):
        key = f"{self.namespaced_name}/{self.group}/{self.kind}"
        if self.section_name:
            key += f"/{self.section_name}"
        return key


@dataclass(frozen=True)
class TargetReference:
    """Entry of spec.targetRefs"""

    name: str
    kind: str
    group: str = ""
    sectionName: Optional[str] = None  # pylint: disable=invalid-name

    @classmethod
    def from_model(cls, model) -> "TargetReference":
        """Creates reference from its dictionary form"""
        return cls(
            name=model["name"],
            kind=model["kind"],
            group=model.get("group") or "",
            sectionName=model.get("sectionName") or None,
        )

    def key(self, namespace: str, with_section=False) -> PolicyTargetKey:
        """Returns target key, policies can only target objects in their own namespace"""
        section = self.sectionName if with_section else None
        return PolicyTargetKey(NamespacedName(namespace, self.name), self.group, self.kind, section)


@dataclass
class AncestorStatus:
    """PolicyAncestorStatus, one entry per (ancestor, controller) pair"""

    # pylint: disable=invalid-name
    ancestorRef: ParentReference
    controllerName: str
    conditions: list[dict] = field(default_factory=list)

    @classmethod
    def from_model(cls, model) -> "AncestorStatus":
        """Creates AncestorStatus from its dictionary form"""
        return cls(
            ancestorRef=ParentReference.from_model(model["ancestorRef"]),
            controllerName=model["controllerName"],
            conditions=[dict(condition) for condition in model.get("conditions") or []],
        )

    def asdict(self) -> dict:
        """Returns dictionary form"""
        return {
            "ancestorRef": self.ancestorRef.asdict(),
            "controllerName": self.controllerName,
            "conditions": self.conditions,
        }


class Policy(KubernetesObject):
    """Base class with common functionality for all policies"""

    @property
    def target_refs(self) -> list[TargetReference]:
        """Returns spec.targetRefs"""
        return [TargetReference.from_model(ref) for ref in self.model.spec.targetRefs or []]

    @property
    def priority(self) -> Optional[int]:
        """Returns spec.priority, None when not set"""
        priority = self.model.spec.priority
        return None if priority is None or priority == {} else priority

    def targets(self, kind: str, name: str, group: str = "") -> bool:
        """Returns True if any targetRef points to the object of the kind in the policy namespace"""
        return any(ref.kind == kind and ref.name == name and ref.group == group for ref in self.target_refs)

    @property
    def ancestors(self) -> list[AncestorStatus]:
        """Returns status.ancestors"""
        return [AncestorStatus.from_model(ancestor) for ancestor in self.status.get("ancestors") or []]


def policy_condition(generation: int, accepted: bool, message: str, reason: Reason = None) -> Condition:
    """Accepted condition of a policy, reason defaults to Accepted or Invalid based on the status"""
    if reason is None:
        reason = Reason.ACCEPTED if accepted else Reason.INVALID
    return Condition(
        type=ConditionType.ACCEPTED,
        status=condition_status(accepted),
        reason=reason,
        message=message,
        observedGeneration=generation,
    )


def policy_conflict_condition(generation: int, message: str) -> Condition:
    """Accepted=False condition of a policy that lost a conflict"""
    return policy_condition(generation, False, message, reason=Reason.CONFLICTED)


def set_ancestor_status(status: dict, ancestor_status: AncestorStatus) -> bool:
    """
    Merges the ancestor status into status.ancestors.
    Returns False when nothing would change, so that equal conditions do not trigger status writes
    """
    if not ancestor_status.conditions:
        return False
    condition = Condition.from_model(ancestor_status.conditions[0])

    ancestors = status.setdefault("ancestors", [])
    for existing in ancestors:
        if (
            ParentReference.from_model(existing["ancestorRef"]).value_equal(ancestor_status.ancestorRef)
            and existing["controllerName"] == ancestor_status.controllerName
        ):
            conditions = existing.setdefault("conditions", [])
            if not verify_conditions(conditions, condition):
                return False
            set_status_condition(conditions, condition)
            return True

    ancestors.append(ancestor_status.asdict())
    return True


def set_ancestors(
    status: dict, parent_refs: list[ParentReference], condition: Condition, controller_name: str = None
) -> bool:
    """Sets the condition for every ancestor, returns True if any ancestor entry changed"""
    controller_name = controller_name or settings["controller_name"]
    updated = False
    for parent in parent_refs:
        ancestor_status = AncestorStatus(
            ancestorRef=parent, controllerName=controller_name, conditions=[condition.stamped()]
        )
        if set_ancestor_status(status, ancestor_status):
            updated = True
    return updated


def prune_ancestors(status: dict, parent_refs: list[ParentReference]) -> bool:
    """Removes ancestors which are not referenced anymore, returns True if any was removed"""
    ancestors = status.get("ancestors") or []
    kept = [
        ancestor
        for ancestor in ancestors
        if any(ParentReference.from_model(ancestor["ancestorRef"]).value_equal(ref) for ref in parent_refs)
    ]
    status["ancestors"] = kept
    return len(kept) != len(ancestors)


def status_update(policy: Policy, status: dict) -> Update:
    """Returns status update which replaces the status of the live policy with the given one"""
    return Update(
        namespaced_name=policy.namespaced_name,
        resource=type(policy),
        mutator=replace_status(type(policy), status),
    )


def update_delete_ancestors(updater: "Updater", policy: Policy, parent_refs: list[ParentReference]) -> bool:
    """
    Retracts ancestors of the policy which are no longer present in parent_refs.
    Returns True if an update was sent to the updater
    """
    status = policy.status
    if not prune_ancestors(status, parent_refs):
        return False
    logger.info("Pruning stale ancestors of %s %s", policy.KIND, policy.namespaced_name)
    updater.update(status_update(policy, status))
    return True
