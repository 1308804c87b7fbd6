"""Mechanical tag copy-forward.

The core never decides which tags a traced object should carry. It only
carries tags from the traced record onto the object it replaces, following a
fixed set of rules.
"""

from typing import Dict, Mapping, Optional, Tuple

#: Keys filled in from the traced record only when the target lacks them.
FILL_MISSING_KEYS: Tuple[str, ...] = (
    'building:levels',
    'building:flats',
    'start_date',
)

#: Keys always overwritten by the traced record.
OVERWRITE_KEYS: Tuple[str, ...] = (
    'ref:ruian:building',
    'building:ruian:type',
)

#: Keys whose generic value ``yes`` gives way to a specific one.
SPECIFIC_OVER_GENERIC_KEYS: Tuple[str, ...] = (
    'building',
)


def copy_forward_tags(
    target: Mapping[str, str],
    source: Mapping[str, str],
    source_tag: Optional[str] = None,
) -> Dict[str, str]:
    """Carry tags of a traced record onto an existing object's tags.

    Args:
        target: Current tags of the object being retraced
        source: Tags of the traced record
        source_tag: Value for the ``source`` key, left alone if None

    Returns:
        New tag dictionary; ``target`` is not modified

    Examples:
        >>> copy_forward_tags({'building': 'yes'}, {'building': 'house', 'start_date': '1920'})
        {'building': 'house', 'start_date': '1920'}
        >>> copy_forward_tags({'building': 'church'}, {'building': 'house'})
        {'building': 'church'}
    """
    result = dict(target)

    if source_tag is not None:
        result['source'] = source_tag

    for key in SPECIFIC_OVER_GENERIC_KEYS:
        if key in source and result.get(key, 'yes') == 'yes':
            result[key] = source[key]

    for key in FILL_MISSING_KEYS:
        if key in source and key not in result:
            result[key] = source[key]

    for key in OVERWRITE_KEYS:
        if key in source:
            result[key] = source[key]

    # ref:ruian is superseded by ref:ruian:building
    ref = source.get('ref:ruian:building')
    if ref is not None and result.get('ref:ruian') == ref:
        del result['ref:ruian']

    return result


def merge_tags(survivor: Mapping[str, str], duplicate: Mapping[str, str]) -> Dict[str, str]:
    """Tags of ``survivor`` completed with keys only ``duplicate`` has."""
    result = dict(duplicate)
    result.update(survivor)
    return result


__all__ = [
    'FILL_MISSING_KEYS',
    'OVERWRITE_KEYS',
    'SPECIFIC_OVER_GENERIC_KEYS',
    'copy_forward_tags',
    'merge_tags',
]
