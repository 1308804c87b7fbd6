"""Duplicate-way merge.

Two ways describing the same ring (possibly from a different starting vertex
or in the opposite direction) are merged into one: the survivor takes over the
duplicate's tags and relation memberships and the duplicate is deleted.
"""

import logging
from typing import Callable, Iterable, List, Optional

from ..dataset import Relation
from ..editing.objects import EdMultipolygon, EdWay
from ..tags import merge_tags

logger = logging.getLogger(__name__)


def is_merge_candidate(
    a: EdWay,
    b: EdWay,
    allow_inverted: bool = True,
    min_shared_nodes: Optional[int] = None,
) -> bool:
    """Check whether two ways are duplicates of each other.

    Args:
        a: First way
        b: Second way
        allow_inverted: Accept rings running in opposite directions
        min_shared_nodes: Also accept ways sharing at least this many distinct nodes

    Returns:
        True if the ways should be merged
    """
    if a is b or a.is_deleted or b.is_deleted:
        return False
    if a.has_identical_node_geometry(b.nodes, allow_inverted):
        return True
    if min_shared_nodes is not None:
        shared = set(a.nodes) & set(b.nodes)
        return len(shared) >= min_shared_nodes
    return False


def _choose_survivor(a: EdWay, b: EdWay):
    if b.has_original and not a.has_original:
        return b, a
    return a, b


def _merge_into(survivor: EdWay, duplicate: EdWay) -> bool:
    editor = survivor.editor
    relations = duplicate.external_referrers(Relation)
    if any(r.get('type') != 'multipolygon' for r in relations):
        logger.debug("Way %s is a member of a non-multipolygon relation, not merged",
                     duplicate.unique_id)
        return False
    for relation in relations:
        editor.use_multipolygon(relation)

    for mp in duplicate.editor_referrers(EdMultipolygon):
        mp.replace_way(duplicate, survivor)

    tags = merge_tags(survivor.tags, duplicate.tags)
    if tags != survivor.tags:
        survivor.set_tags(tags)

    duplicate.delete()
    logger.debug("Merged way %s into way %s", duplicate.unique_id, survivor.unique_id)
    return True


def merge_duplicate_ways(
    ways: Iterable[EdWay],
    predicate: Callable[[EdWay], bool],
    allow_inverted: bool = True,
    keep: Optional[EdWay] = None,
) -> Optional[EdWay]:
    """Merge every way of ``ways`` with its duplicates.

    Duplicate candidates are found among the ways sharing nodes with each
    way and satisfying ``predicate``. The survivor prefers a way that already
    exists in the host dataset.

    Args:
        ways: Ways to check, typically ``editor.modified_ways()``
        predicate: Filter for ways taking part in the merge
        allow_inverted: Accept rings running in opposite directions
        keep: A way the caller holds on to

    Returns:
        The way that replaced ``keep`` (``keep`` itself if it survived)
    """
    result = keep
    for way in list(ways):
        if way.is_deleted or not predicate(way):
            continue
        min_shared = way.editor.config.merge_min_shared_nodes

        candidates: List[EdWay] = []
        for node in dict.fromkeys(way.nodes):
            for other in node.all_area_way_referrers(predicate):
                if other is not way and other not in candidates:
                    candidates.append(other)

        for other in candidates:
            if not is_merge_candidate(way, other, allow_inverted, min_shared):
                continue
            survivor, duplicate = _choose_survivor(way, other)
            if not _merge_into(survivor, duplicate):
                continue
            if result is duplicate:
                result = survivor
            if duplicate is way:
                break
    return result


__all__ = ['is_merge_candidate', 'merge_duplicate_ways']
