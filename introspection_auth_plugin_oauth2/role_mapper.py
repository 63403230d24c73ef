"""
Map identity-provider groups to local roles.
"""

from typing import FrozenSet, Iterable, Mapping


def map_groups(groups: Iterable[str], mapping: Mapping[str, str]) -> FrozenSet[str]:
    """
    Translate group identifiers into role names.

    Groups without an entry in the mapping are dropped.

    Args:
        groups: Group identifiers taken from the groups claim
        mapping: Group identifier -> local role name

    Returns:
        The set of mapped role names
    """
    return frozenset(mapping[group] for group in groups if group in mapping)
