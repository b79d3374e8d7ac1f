import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class NodeKind(str, Enum):
	FARM = "Farm"
	WEB_APPLICATION = "WebApplication"
	ALTERNATE_ACCESS_MAPPING = "AlternateAccessMapping"
	CONTENT_DATABASE = "ContentDatabase"
	SITE_COLLECTION = "SiteCollection"
	SITE = "Site"
	LIST = "List"
	LIST_ITEM = "ListItem"
	FOLDER = "Folder"
	FIELD = "Field"
	CONTENT_TYPE = "ContentType"
	WORKFLOW_ASSOCIATION = "WorkflowAssociation"
	WEB_PART = "WebPart"
	FEATURE = "Feature"
	FEATURE_DEFINITION = "FeatureDefinition"
	SOLUTION = "Solution"
	WEB_TEMPLATE = "WebTemplate"
	USER = "User"


@dataclass(eq=False)
class Node:
	"""
	A borrowed handle into the hierarchy.

	`attributes` holds the kind-specific property bag using SharePoint property
	names (Title, Id, Url, Created, ...). `handle` is whatever the source needs
	to resolve children and release the node; visitors never touch it.
	"""
	kind: NodeKind
	id: str
	location: str
	attributes: Dict[str, Any] = field(default_factory=dict)
	handle: Any = field(default=None, repr=False)
	_parent_ref: Optional[weakref.ref] = field(default=None, repr=False)

	@property
	def parent(self) -> Optional['Node']:
		if self._parent_ref is None:
			return None
		return self._parent_ref()

	def child(self, kind: NodeKind, id: str, location: str,
			  attributes: Dict[str, Any] = None, handle: Any = None) -> 'Node':
		"""Creates a node whose parent is this node (weakly referenced)."""
		return Node(
			kind=kind,
			id=id,
			location=location,
			attributes=attributes or {},
			handle=handle,
			_parent_ref=weakref.ref(self),
		)

	def get(self, name: str, default: Any = "") -> Any:
		value = self.attributes.get(name)
		return default if value is None else value


@dataclass
class RoleAssignment:
	member: str
	member_type: str = ""
	roles: List[str] = field(default_factory=list)


# A record is one output row: column name -> string value, in column order.
Record = Dict[str, str]


@dataclass(frozen=True)
class ErrorEntry:
	location: str
	area: str
	cause: str

	def lines(self) -> List[str]:
		return [
			f"Location: {self.location}",
			f"Area: {self.area}",
			f"Error: {self.cause}",
		]
