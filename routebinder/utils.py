"""Utility functions for routebinder"""

import enum
from copy import deepcopy
from dataclasses import is_dataclass, fields

JSONValues = None | str | int | bool | list["JSONValues"] | dict[str, "JSONValues"]


def asdict(obj) -> dict[str, JSONValues]:
    """
    This function converts dataclass object to dictionary.
    While it works similar to `dataclasses.asdict` a notable change is usage of
    overriding `asdict()` function if dataclass contains it.
    This function works recursively in lists, tuples and dicts. All other values are passed to copy.deepcopy function.
    """
    if not is_dataclass(obj):
        raise TypeError("asdict() should be called on dataclass instances")
    return _asdict_recurse(obj)


def _asdict_recurse(obj):
    if hasattr(obj, "asdict"):
        return obj.asdict()

    if not is_dataclass(obj):
        return deepcopy(obj)

    result = {}
    for field in fields(obj):
        value = getattr(obj, field.name)
        if value is None:
            continue  # do not include None values

        if is_dataclass(value):
            result[field.name] = _asdict_recurse(value)
        elif isinstance(value, (list, tuple)):
            result[field.name] = type(value)(_asdict_recurse(i) for i in value)
        elif isinstance(value, dict):
            result[field.name] = type(value)((_asdict_recurse(k), _asdict_recurse(v)) for k, v in value.items())
        elif isinstance(value, enum.Enum):
            result[field.name] = value.value
        else:
            result[field.name] = deepcopy(value)
    return result


def primitive(value):
    """Converts openshift_client Model/ListModel (or plain values) into plain dicts and lists"""
    if isinstance(value, dict):
        return {k: primitive(v) for k, v in value.items()}
    if isinstance(value, list):
        return [primitive(i) for i in value]
    return deepcopy(value)


def hostnames_intersect(first: str, second: str) -> bool:
    """Returns True if either hostname covers the other one"""
    return hostnames_match(first, second) or hostnames_match(second, first)


def hostnames_match(mask: str, hostname: str) -> bool:
    """
    Returns True if `hostname` is covered by `mask`.
    The mask may start with a wildcard label, "*.sample.com" covers "sub.sample.com" and "a.sub.sample.com"
    but not "sample.com". Empty string on either side means no constraint and always matches.
    """
    if not mask or not hostname:
        return True

    mask_labels = mask.split(".")
    hostname_labels = hostname.split(".")

    if mask_labels[0] != "*":
        return mask_labels == hostname_labels

    # leading wildcard absorbs one or more labels, the rest has to be equal
    suffix = mask_labels[1:]
    if len(hostname_labels) <= len(suffix):
        return False
    return hostname_labels[len(hostname_labels) - len(suffix) :] == suffix
