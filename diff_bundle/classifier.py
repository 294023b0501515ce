"""
Resolves copy and move relationships between the changes of one diff.

The parser only knows what each file section says about itself. A source
file named by ``copy from`` or ``rename from`` headers gets its kind here,
from the destinations pointing at it:

    one rename                 -> move-away
    one rename plus copies     -> multicopy
    copies only                -> copy-away (or stays delete)
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from .exceptions import ClassificationError
from .logging_utils import get_logger
from .models import Change, ChangeType, FileType

logger = get_logger("classifier")

_MOVED_KINDS = (ChangeType.MOVE_AWAY, ChangeType.MULTICOPY)


def classify_changes(changes: Iterable[Change]) -> List[Change]:
    """
    Assign final kinds to a flat list of changes.

    Input changes are never modified; updated records are new copies.
    Already classified records are accepted and resolved again.

    Args:
        changes: Changes in diff order, as produced by the parser

    Returns:
        Classified changes in diff order, with synthesized source records
        placed before their first destination
    """
    changes = list(changes)

    by_path: Dict[str, int] = {}
    for index, change in enumerate(changes):
        path = change.current_path
        if path is None:
            raise ClassificationError("Change without any path", details={"kind": change.kind.value})
        if path in by_path:
            raise ClassificationError(f"Path {path} is claimed by more than one change", path=path)
        by_path[path] = index

    destinations: Dict[str, List[int]] = OrderedDict()
    for index, change in enumerate(changes):
        if not change.kind.is_here:
            continue
        source = change.old_path
        if source is None or source == change.new_path:
            raise ClassificationError(
                f"{change.kind.value} change of {change.current_path} has no distinct source",
                path=change.current_path,
            )
        destinations.setdefault(source, []).append(index)

    replaced: Dict[int, Change] = {}
    inserted: Dict[int, Change] = {}

    for source, dest_indexes in destinations.items():
        dests = [changes[i] for i in dest_indexes]
        own_index = by_path.get(source)
        own = changes[own_index] if own_index is not None else None
        record = _resolve_source(source, own, dests)

        if own_index is None:
            inserted[dest_indexes[0]] = record
        else:
            replaced[own_index] = record

        source_data = record.old_data
        for i, dest in zip(dest_indexes, dests):
            replaced[i] = _resolve_destination(dest, source_data)

        logger.debug(f"Source {source} resolved as {record.kind.value} for {len(dests)} destinations")

    result = []
    for index, change in enumerate(changes):
        if index in inserted:
            result.append(inserted[index])
        result.append(replaced.get(index, change))
    return result


def _resolve_source(source: str, own: Optional[Change], dests: List[Change]) -> Change:
    """Build the record for a path other changes copy or move from"""
    moves = [dest for dest in dests if dest.kind == ChangeType.MOVE_HERE]
    if len(moves) > 1:
        raise ClassificationError(
            f"{source} is renamed to more than one path",
            path=source,
            details={"destinations": [dest.current_path for dest in moves]},
        )
    if own is not None and own.kind in (ChangeType.ADD, ChangeType.MOVE_HERE, ChangeType.COPY_HERE):
        raise ClassificationError(
            f"{source} is used as a copy source but is itself a {own.kind.value} change",
            path=source,
        )

    away_paths = tuple(dest.current_path for dest in dests)
    old_data = own.old_data if own is not None else None
    if old_data is None:
        old_data = next((dest.old_data for dest in dests if dest.old_data is not None), None)
    is_binary = any(dest.is_binary for dest in dests) or (own is not None and own.is_binary)
    file_type = FileType.BINARY if is_binary else FileType.TEXT

    if moves:
        if own is not None and own.kind not in _MOVED_KINDS:
            raise ClassificationError(
                f"{source} is renamed away but also has its own {own.kind.value} change",
                path=source,
            )
        kind = ChangeType.MULTICOPY if len(dests) > 1 else ChangeType.MOVE_AWAY
        return Change(
            old_path=source,
            new_path=None,
            kind=kind,
            file_type=file_type,
            old_properties=own.old_properties if own is not None else dests[0].old_properties,
            old_data=old_data,
            away_paths=away_paths,
        )

    if own is None:
        # Unchanged source of plain copies
        properties = dests[0].old_properties
        return Change(
            old_path=source,
            new_path=source,
            kind=ChangeType.COPY_AWAY,
            file_type=file_type,
            old_properties=properties,
            new_properties=properties,
            old_data=old_data,
            new_data=old_data,
            away_paths=away_paths,
        )

    if own.kind == ChangeType.DELETE:
        # Copied and deleted, with no destination marked as the rename
        return own.model_copy(update={"old_data": old_data, "file_type": file_type, "away_paths": away_paths})

    if own.kind in _MOVED_KINDS:
        raise ClassificationError(
            f"{own.kind.value} source {source} has no rename destination",
            path=source,
            details={"destinations": list(away_paths)},
        )

    return own.model_copy(
        update={
            "kind": ChangeType.COPY_AWAY,
            "old_data": old_data,
            "file_type": file_type,
            "away_paths": away_paths,
        }
    )


def _resolve_destination(dest: Change, source_data: Optional[bytes]) -> Change:
    update = {}
    if dest.old_data is not None:
        update["old_data"] = None
    if dest.is_binary and dest.new_data is None and source_data is not None:
        # Exact copies carry no payload of their own
        update["new_data"] = source_data
    if not update:
        return dest
    return dest.model_copy(update=update)
