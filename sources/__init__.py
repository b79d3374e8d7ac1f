from .base import HierarchySource, HttpSource
from .snapshot import SnapshotSource
from .sharepoint import SharePointRestSource

AVAILABLE_SOURCES: list[HierarchySource] = [
    SnapshotSource(),
    SharePointRestSource(),
]


def get_source_for(target: str, **options) -> HierarchySource:
    """Opens the first source that understands `target`, or returns None."""
    for source in AVAILABLE_SOURCES:
        if source.can_handle(target):
            return source.open(target, **options)
    return None
