"""
Status conditions and the machine readable reasons written into them.
Statuses are kept as plain dictionaries, in the same shape they are written to the cluster
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from routebinder.utils import asdict

# ISO-8601 which is used by kubernetes
DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def now() -> str:
    """Returns current time in kubernetes format"""
    return datetime.now(timezone.utc).strftime(DATETIME_FORMAT)


class ConditionType(str, enum.Enum):
    """Condition types used by routes, gateways, listeners and policies"""

    ACCEPTED = "Accepted"
    PROGRAMMED = "Programmed"
    RESOLVED_REFS = "ResolvedRefs"
    CONFLICTED = "Conflicted"


class Reason(str, enum.Enum):
    """Reasons of conditions, stable values observed by cluster operators"""

    ACCEPTED = "Accepted"
    PROGRAMMED = "Programmed"
    RESOLVED_REFS = "ResolvedRefs"
    NO_MATCHING_PARENT = "NoMatchingParent"
    NO_MATCHING_LISTENER_HOSTNAME = "NoMatchingListenerHostname"
    NOT_ALLOWED_BY_LISTENERS = "NotAllowedByListeners"
    REF_NOT_PERMITTED = "RefNotPermitted"
    BACKEND_NOT_FOUND = "BackendNotFound"
    INVALID_KIND = "InvalidKind"
    CONFLICTED = "Conflicted"
    NO_CONFLICTS = "NoConflicts"
    INVALID = "Invalid"
    INVALID_ROUTE_KINDS = "InvalidRouteKinds"
    INVALID_CERTIFICATE_REF = "InvalidCertificateRef"


class ReasonError(Exception):
    """Error which carries a condition reason next to the human readable message"""

    def __init__(self, reason: Reason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


def no_matching_listener_hostname() -> ReasonError:
    """Error raised when none of the route hostnames intersect with listener hostnames"""
    return ReasonError(Reason.NO_MATCHING_LISTENER_HOSTNAME, "no matching hostnames")


def condition_status(status: bool) -> str:
    """Converts boolean into condition status"""
    return "True" if status else "False"


@dataclass
class Condition:
    """metav1.Condition"""

    # pylint: disable=invalid-name
    type: str
    status: str
    reason: str
    message: str = ""
    observedGeneration: int = 0
    lastTransitionTime: Optional[str] = None

    @classmethod
    def from_model(cls, model) -> "Condition":
        """Creates Condition from its dictionary form"""
        return cls(
            type=model["type"],
            status=model["status"],
            reason=model.get("reason", ""),
            message=model.get("message", ""),
            observedGeneration=model.get("observedGeneration", 0),
            lastTransitionTime=model.get("lastTransitionTime"),
        )

    def stamped(self) -> dict:
        """Returns dictionary form with lastTransitionTime set"""
        result = asdict(self)
        result.setdefault("lastTransitionTime", now())
        return result


def find_condition(conditions: list[dict], condition_type: str) -> Optional[dict]:
    """Returns condition of the type, None if there is none"""
    for condition in conditions:
        if condition["type"] == condition_type:
            return condition
    return None


def merge_condition(conditions: list[dict], new_condition: Condition) -> list[dict]:
    """Returns conditions where the condition of the same type is replaced by the new one"""
    merged = [condition for condition in conditions if condition["type"] != new_condition.type]
    merged.append(new_condition.stamped())
    return merged


def is_condition_present_and_equal(conditions: list[dict], condition: Condition) -> bool:
    """Returns True if a condition with the same type, reason, status and generation exists, message is ignored"""
    for existing in conditions:
        if (
            existing["type"] == condition.type
            and existing.get("reason") == condition.reason
            and existing["status"] == condition.status
            and existing.get("observedGeneration", 0) == condition.observedGeneration
        ):
            return True
    return False


def verify_conditions(conditions: list[dict], new_condition: Condition) -> bool:
    """Returns True if the new condition should be written, False if it would not change anything"""
    existing = find_condition(conditions, new_condition.type)
    if existing is None:
        return True
    if existing.get("observedGeneration", 0) > new_condition.observedGeneration:
        return False
    return (
        existing["status"],
        existing.get("reason", ""),
        existing.get("message", ""),
        existing.get("observedGeneration", 0),
    ) != (new_condition.status, new_condition.reason, new_condition.message, new_condition.observedGeneration)


def set_status_condition(conditions: list[dict], new_condition: Condition):
    """
    Sets the condition in place, like meta.SetStatusCondition does.
    lastTransitionTime changes only when the status of the condition changes
    """
    new = new_condition.stamped()
    existing = find_condition(conditions, new["type"])
    if existing is None:
        conditions.append(new)
        return

    if existing["status"] != new["status"]:
        existing["status"] = new["status"]
        existing["lastTransitionTime"] = new["lastTransitionTime"]
    for key in ("reason", "message", "observedGeneration"):
        existing[key] = new[key]


def accepted_message(kind: str) -> str:
    """Message of Accepted condition for the kind"""
    return f"the {kind} has been accepted by the apisix-ingress-controller"


def set_route_condition_accepted(parent_status: dict, generation: int, status: bool, message: str):
    """
    Sets Accepted condition of the route parent status.
    An Accepted=False condition already set by the listener evaluation is never flipped back to True
    """
    condition = Condition(
        type=ConditionType.ACCEPTED,
        status=condition_status(status),
        reason=Reason.ACCEPTED,
        message=message,
        observedGeneration=generation,
    )
    if message == no_matching_listener_hostname().message:
        condition.reason = Reason.NO_MATCHING_LISTENER_HOSTNAME

    conditions = parent_status.setdefault("conditions", [])
    rejected = any(
        existing["type"] == condition.type and existing["status"] == "False" and condition.status == "True"
        for existing in conditions
    )
    if not is_condition_present_and_equal(conditions, condition) and not rejected:
        parent_status["conditions"] = merge_condition(conditions, condition)


def set_route_condition_resolved_refs(parent_status: dict, generation: int, error: Optional[Exception]):
    """Sets ResolvedRefs condition with the reason taken from ReasonError"""
    condition = Condition(
        type=ConditionType.RESOLVED_REFS,
        status="True",
        reason=Reason.RESOLVED_REFS,
        message="backendRefs are resolved",
        observedGeneration=generation,
    )
    if error is not None:
        condition.status = "False"
        condition.message = str(error)
        if isinstance(error, ReasonError):
            condition.reason = error.reason

    conditions = parent_status.setdefault("conditions", [])
    if not is_condition_present_and_equal(conditions, condition):
        parent_status["conditions"] = merge_condition(conditions, condition)


def _set_gateway_condition(status: dict, condition: Condition) -> bool:
    conditions = status.setdefault("conditions", [])
    if is_condition_present_and_equal(conditions, condition):
        return False
    status["conditions"] = merge_condition(conditions, condition)
    return True


def set_gateway_condition_accepted(status: dict, generation: int, accepted: bool, message: str) -> bool:
    """Sets Accepted condition of a Gateway status, returns True if the status changed"""
    return _set_gateway_condition(
        status,
        Condition(
            type=ConditionType.ACCEPTED,
            status=condition_status(accepted),
            reason=Reason.ACCEPTED,
            message=message,
            observedGeneration=generation,
        ),
    )


def set_gateway_condition_programmed(status: dict, generation: int, programmed: bool, message: str) -> bool:
    """Sets Programmed condition of a Gateway status, returns True if the status changed"""
    return _set_gateway_condition(
        status,
        Condition(
            type=ConditionType.PROGRAMMED,
            status=condition_status(programmed),
            reason=Reason.PROGRAMMED,
            message=message,
            observedGeneration=generation,
        ),
    )
