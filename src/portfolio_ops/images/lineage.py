"""
portfolio_ops.images.lineage

Image lineage reconstruction.

Responsibilities:
- Walk parent edges from a storage object back to its root (bounded, cycle safe).
- Turn the walked paths into display nodes (storage snapshot, collection, step label).
- Compute per-step size transitions between consecutive nodes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from portfolio_ops.db.models import Image, RelationKind
from portfolio_ops.db.repositories.relations import RelationRepo
from portfolio_ops.storage.bucket import StoredObject
from portfolio_ops.storage.layout import (
    Collection,
    StorageLayout,
    download_url,
    file_name_of,
    first_download_token,
)

MAX_HOPS = 8


@dataclass(frozen=True, slots=True)
class LineageNode:
    path: str
    name: str
    content_type: str | None
    size_bytes: int | None
    download_url: str | None
    collection: Collection
    metadata_source: str | None
    step_label: str
    is_current: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "contentType": self.content_type,
            "sizeBytes": self.size_bytes,
            "downloadURL": self.download_url,
            "collection": self.collection,
            "metadataSource": self.metadata_source,
            "stepLabel": self.step_label,
            "isCurrent": self.is_current,
        }


async def walk(
    relations: RelationRepo, *, user_id: str, start_path: str | None, max_hops: int = MAX_HOPS
) -> list[str]:
    """
    Return the root-first chain of paths ending at `start_path`.

    Each hop follows the most recently updated edge whose target is the cursor.
    The walk stops when there is no parent, after `max_hops` paths, or when a path
    repeats.
    """
    if not start_path:
        return []

    chain: list[str] = []
    visited: set[str] = set()
    cursor: str | None = start_path
    while cursor and len(chain) < max_hops and cursor not in visited:
        visited.add(cursor)
        chain.insert(0, cursor)
        edge = await relations.latest_parent(user_id=user_id, target_path=cursor)
        cursor = edge.source_path if edge is not None else None
    return chain


def step_label(collection: Collection, metadata_source: str | None, *, is_current: bool) -> str:
    if is_current or collection == "optimized":
        return "optimized"
    if collection == "gallery":
        return "gallery"
    if collection == "n8n":
        if metadata_source == RelationKind.n8n_compatible:
            return "n8n-compatible format"
        if metadata_source == RelationKind.n8n_response:
            return "n8n generated"
        return "n8n"
    if collection == "original":
        return "original"
    return "file"


SnapshotReader = Callable[[str], Awaitable[StoredObject | None]]


async def build_nodes(
    paths: list[str],
    *,
    image: Image,
    layout: StorageLayout,
    bucket_name: str,
    read_snapshot: SnapshotReader,
    stored_original: bool = True,
) -> list[LineageNode]:
    nodes: list[LineageNode] = []
    # Dict keys keep first-seen order while dropping duplicates.
    for path in dict.fromkeys(paths):
        if path == image.optimized_path:
            snapshot = await read_snapshot(path)
            source = snapshot.metadata.get("source") if snapshot else None
            nodes.append(
                LineageNode(
                    path=path,
                    name=(snapshot.metadata.get("originalName") if snapshot else None)
                    or image.optimized_name,
                    content_type=(snapshot.content_type if snapshot else None)
                    or image.optimized_mime,
                    size_bytes=snapshot.size
                    if snapshot and snapshot.size is not None
                    else image.optimized_bytes,
                    download_url=download_url(bucket_name, path, image.optimized_token),
                    collection="optimized",
                    metadata_source=source,
                    step_label=step_label("optimized", source, is_current=True),
                    is_current=True,
                )
            )
            continue

        # A storage-sourced image records its source object as `original_path`; that
        # object is described from its own snapshot like any other hop.
        if stored_original and path == image.original_path:
            nodes.append(
                LineageNode(
                    path=path,
                    name=image.original_name,
                    content_type=image.original_mime,
                    size_bytes=image.original_bytes,
                    download_url=None,
                    collection="original",
                    metadata_source=None,
                    step_label=step_label("original", None, is_current=False),
                    is_current=False,
                )
            )
            continue

        snapshot = await read_snapshot(path)
        if snapshot is None:
            continue
        collection = layout.collection_for(path)
        source = snapshot.metadata.get("source")
        token = first_download_token(snapshot.metadata)
        nodes.append(
            LineageNode(
                path=path,
                name=snapshot.metadata.get("originalName") or file_name_of(path),
                content_type=snapshot.content_type,
                size_bytes=snapshot.size,
                download_url=download_url(bucket_name, path, token) if token else None,
                collection=collection,
                metadata_source=source,
                step_label=step_label(collection, source, is_current=False),
                is_current=False,
            )
        )
    return nodes


def saved_percent(from_bytes: int, saved_bytes: int) -> float | None:
    if from_bytes <= 0:
        return None
    return round(saved_bytes / from_bytes * 100, 1)


def build_transitions(nodes: list[LineageNode]) -> list[dict[str, Any]]:
    transitions: list[dict[str, Any]] = []
    for from_node, to_node in zip(nodes, nodes[1:]):
        from_bytes = from_node.size_bytes or 0
        to_bytes = to_node.size_bytes or 0
        saved = max(0, from_bytes - to_bytes)
        transitions.append(
            {
                "fromPath": from_node.path,
                "toPath": to_node.path,
                "fromCollection": from_node.collection,
                "toCollection": to_node.collection,
                "fromContentType": from_node.content_type,
                "toContentType": to_node.content_type,
                "fromSizeBytes": from_node.size_bytes,
                "toSizeBytes": to_node.size_bytes,
                "savedBytes": saved,
                "savedPercent": saved_percent(from_bytes, saved),
            }
        )
    return transitions
