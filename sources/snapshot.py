import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from .base import HierarchySource
from spinventory.models import Node, NodeKind, RoleAssignment

logger = logging.getLogger(__name__)


class SnapshotSource(HierarchySource):
	"""
	Serves a hierarchy from a JSON export. Each node is an object:

		{
			"kind": "Site",
			"id": "6f1c...",
			"location": "https://portal/sites/hr",
			"attributes": {"Title": "HR", ...},
			"children": [ ...nodes... ],
			"roleAssignments": [{"member": "HR Owners", "memberType": "SharePointGroup", "roles": ["Full Control"]}],
			"rootFolder": {"name": "", "files": [1024, 2048], "folders": [ ...folders... ]}
		}

	Only `kind` is required. `id` falls back to the location, `location` to the
	Url or Title attribute.
	"""
	name = "Snapshot"

	def __init__(self, data: dict = None):
		self.data = data

	@classmethod
	def from_file(cls, path) -> 'SnapshotSource':
		path = Path(path)
		with open(path, 'r', encoding='utf-8') as f:
			data = json.load(f)
		logger.info(f"[{cls.name}] Loaded hierarchy snapshot from {path}")
		return cls(data)

	def can_handle(self, target: str) -> bool:
		return str(target).lower().endswith(".json")

	def open(self, target: str, **options) -> 'SnapshotSource':
		return self.from_file(target)

	def _make(self, raw: dict, parent: Optional[Node] = None) -> Node:
		kind = NodeKind(raw["kind"])
		attributes = dict(raw.get("attributes") or {})
		location = raw.get("location") or attributes.get("Url") or attributes.get("Title") or kind.value
		node_id = str(raw.get("id") or attributes.get("Id") or location)
		if parent is None:
			return Node(kind=kind, id=node_id, location=location, attributes=attributes, handle=raw)
		return parent.child(kind, node_id, location, attributes, handle=raw)

	def root(self) -> Node:
		if not self.data:
			raise ValueError("Snapshot holds no hierarchy")
		return self._make(self.data)

	def children(self, node: Node, kind: NodeKind) -> Iterable[Node]:
		for raw in node.handle.get("children") or []:
			if raw.get("kind") == kind.value:
				yield self._make(raw, node)

	def role_assignments(self, node: Node) -> Iterable[RoleAssignment]:
		for raw in node.handle.get("roleAssignments") or []:
			yield RoleAssignment(
				member=raw.get("member", ""),
				member_type=raw.get("memberType", ""),
				roles=list(raw.get("roles") or []),
			)

	def root_folder(self, node: Node) -> Optional[Node]:
		raw = node.handle.get("rootFolder")
		if raw is None:
			return None
		return node.child(NodeKind.FOLDER, raw.get("name", ""), f"{node.location}/{raw.get('name', '')}".rstrip("/"), handle=raw)

	def subfolders(self, folder: Node) -> Iterable[Node]:
		for raw in folder.handle.get("folders") or []:
			name = raw.get("name", "")
			yield folder.child(NodeKind.FOLDER, name, f"{folder.location}/{name}", handle=raw)

	def file_lengths(self, folder: Node) -> Iterable[int]:
		for length in folder.handle.get("files") or []:
			yield int(length)
