import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Set, Tuple

from .models import NodeKind

logger = logging.getLogger(__name__)


class ReportKind(str, Enum):
	"""One output file per member; the value is the file name suffix (without .csv)."""
	FARM_SOLUTIONS = "FarmSolutions"
	FARM_FEATURES = "FarmFeatures"
	WEB_TEMPLATES = "WebTemplates"
	WEB_APPLICATIONS = "WebApplications"
	ALTERNATE_ACCESS_MAPPINGS = "AlternateAccessMappings"
	CONTENT_DATABASES = "ContentDatabases"
	SITE_COLLECTIONS = "SiteCollections"
	SITE_COLLECTION_ADMINS = "SiteCollectionAdmins"
	SITE_COLLECTION_FEATURES = "SiteCollectionFeatures"
	WEBS = "Webs"
	WEB_SIZES = "WebSizes"
	WEB_PERMISSIONS = "WebPermissions"
	WEB_FEATURES = "WebFeatures"
	SITE_CONTENT_TYPES = "SiteContentTypes"
	WEB_WORKFLOW_ASSOCIATIONS = "WebWorkflowAssociations"
	LISTS = "Lists"
	LIST_PERMISSIONS = "ListPermissions"
	LIST_FIELDS = "ListFields"
	LIST_CONTENT_TYPES = "ListContentTypes"
	LIST_WORKFLOW_ASSOCIATIONS = "ListWorkflowAssociations"
	CONTENT_TYPE_WORKFLOW_ASSOCIATIONS = "ContentTypeWorkflowAssociations"
	LIST_ITEMS = "ListItems"
	LIST_ITEM_PERMISSIONS = "ListItemPermissions"
	WEB_PARTS = "WebParts"

	@property
	def file_name(self) -> str:
		return f"{self.value}.csv"

	@property
	def flag(self) -> str:
		"""CLI switch name, e.g. `inventory-list-fields`."""
		return "inventory-" + re.sub(r'(?<!^)(?=[A-Z])', '-', self.value).lower()


ERROR_FILE_NAME = "ErrorFile.txt"

# Where each kind can appear in the hierarchy.
PARENT_KINDS: Dict[NodeKind, Tuple[NodeKind, ...]] = {
	NodeKind.SOLUTION: (NodeKind.FARM,),
	NodeKind.FEATURE_DEFINITION: (NodeKind.FARM,),
	NodeKind.WEB_TEMPLATE: (NodeKind.FARM,),
	NodeKind.WEB_APPLICATION: (NodeKind.FARM,),
	NodeKind.ALTERNATE_ACCESS_MAPPING: (NodeKind.WEB_APPLICATION,),
	NodeKind.CONTENT_DATABASE: (NodeKind.WEB_APPLICATION,),
	NodeKind.SITE_COLLECTION: (NodeKind.WEB_APPLICATION,),
	NodeKind.USER: (NodeKind.SITE_COLLECTION,),
	NodeKind.FEATURE: (NodeKind.SITE_COLLECTION, NodeKind.SITE),
	NodeKind.SITE: (NodeKind.SITE_COLLECTION, NodeKind.SITE),
	NodeKind.CONTENT_TYPE: (NodeKind.SITE, NodeKind.LIST),
	NodeKind.WORKFLOW_ASSOCIATION: (NodeKind.SITE, NodeKind.LIST, NodeKind.CONTENT_TYPE),
	NodeKind.LIST: (NodeKind.SITE,),
	NodeKind.FIELD: (NodeKind.LIST,),
	NodeKind.FOLDER: (NodeKind.LIST, NodeKind.FOLDER),
	NodeKind.LIST_ITEM: (NodeKind.LIST, NodeKind.FOLDER),
	NodeKind.WEB_PART: (NodeKind.LIST_ITEM,),
}

# Order in which child kinds of one node are walked. Leaf-ish kinds first so a
# node's own side reports are written before the walk descends.
CHILD_ORDER: Tuple[NodeKind, ...] = (
	NodeKind.SOLUTION,
	NodeKind.FEATURE_DEFINITION,
	NodeKind.WEB_TEMPLATE,
	NodeKind.ALTERNATE_ACCESS_MAPPING,
	NodeKind.CONTENT_DATABASE,
	NodeKind.USER,
	NodeKind.FEATURE,
	NodeKind.FIELD,
	NodeKind.CONTENT_TYPE,
	NodeKind.WORKFLOW_ASSOCIATION,
	NodeKind.WEB_PART,
	NodeKind.LIST_ITEM,
	NodeKind.FOLDER,
	NodeKind.LIST,
	NodeKind.SITE,
	NodeKind.SITE_COLLECTION,
	NodeKind.WEB_APPLICATION,
)

# The chain of kinds that produces each report's rows. The first kind is
# expanded upwards through PARENT_KINDS; consecutive kinds are explicit edges.
REPORT_ROUTES: Dict[ReportKind, Tuple[NodeKind, ...]] = {
	ReportKind.FARM_SOLUTIONS: (NodeKind.FARM, NodeKind.SOLUTION),
	ReportKind.FARM_FEATURES: (NodeKind.FARM, NodeKind.FEATURE_DEFINITION),
	ReportKind.WEB_TEMPLATES: (NodeKind.FARM, NodeKind.WEB_TEMPLATE),
	ReportKind.WEB_APPLICATIONS: (NodeKind.WEB_APPLICATION,),
	ReportKind.ALTERNATE_ACCESS_MAPPINGS: (NodeKind.WEB_APPLICATION, NodeKind.ALTERNATE_ACCESS_MAPPING),
	ReportKind.CONTENT_DATABASES: (NodeKind.WEB_APPLICATION, NodeKind.CONTENT_DATABASE),
	ReportKind.SITE_COLLECTIONS: (NodeKind.SITE_COLLECTION,),
	ReportKind.SITE_COLLECTION_ADMINS: (NodeKind.SITE_COLLECTION, NodeKind.USER),
	ReportKind.SITE_COLLECTION_FEATURES: (NodeKind.SITE_COLLECTION, NodeKind.FEATURE),
	ReportKind.WEBS: (NodeKind.SITE,),
	ReportKind.WEB_SIZES: (NodeKind.SITE,),
	ReportKind.WEB_PERMISSIONS: (NodeKind.SITE,),
	ReportKind.WEB_FEATURES: (NodeKind.SITE, NodeKind.FEATURE),
	ReportKind.SITE_CONTENT_TYPES: (NodeKind.SITE, NodeKind.CONTENT_TYPE),
	ReportKind.WEB_WORKFLOW_ASSOCIATIONS: (NodeKind.SITE, NodeKind.WORKFLOW_ASSOCIATION),
	ReportKind.LISTS: (NodeKind.LIST,),
	ReportKind.LIST_PERMISSIONS: (NodeKind.LIST,),
	ReportKind.LIST_FIELDS: (NodeKind.LIST, NodeKind.FIELD),
	ReportKind.LIST_CONTENT_TYPES: (NodeKind.LIST, NodeKind.CONTENT_TYPE),
	ReportKind.LIST_WORKFLOW_ASSOCIATIONS: (NodeKind.LIST, NodeKind.WORKFLOW_ASSOCIATION),
	ReportKind.CONTENT_TYPE_WORKFLOW_ASSOCIATIONS: (
		NodeKind.LIST, NodeKind.CONTENT_TYPE, NodeKind.WORKFLOW_ASSOCIATION
	),
	ReportKind.LIST_ITEMS: (NodeKind.LIST_ITEM,),
	ReportKind.LIST_ITEM_PERMISSIONS: (NodeKind.LIST_ITEM,),
	ReportKind.WEB_PARTS: (NodeKind.LIST_ITEM, NodeKind.WEB_PART),
}

Edge = Tuple[NodeKind, NodeKind]


def _ancestor_edges(kind: NodeKind, edges: Set[Edge]):
	for parent in PARENT_KINDS.get(kind, ()):
		if (parent, kind) in edges:
			continue
		edges.add((parent, kind))
		_ancestor_edges(parent, edges)


def implied_traversal(reports: Iterable[ReportKind]) -> FrozenSet[Edge]:
	"""
	Every (parent kind, child kind) edge the walk must follow to reach the rows
	of the given reports. Enabling ListFields alone still walks web
	applications, site collections, sites, subsites and lists.
	"""
	edges: Set[Edge] = set()
	for report in reports:
		route = REPORT_ROUTES[report]
		for parent, child in zip(route, route[1:]):
			edges.add((parent, child))
		_ancestor_edges(route[0], edges)
	return frozenset(edges)


@dataclass(frozen=True)
class RunConfig:
	"""Everything one inventory run needs. Built once, never mutated."""
	output_directory: Path
	file_prefix: str
	reports: FrozenSet[ReportKind] = frozenset()
	clear_prior_logs: bool = False
	include_subweb_sizes: bool = False
	traversal: FrozenSet[Edge] = field(init=False, repr=False, compare=False)

	def __post_init__(self):
		object.__setattr__(self, "output_directory", Path(self.output_directory))
		object.__setattr__(self, "reports", frozenset(ReportKind(r) for r in self.reports))
		object.__setattr__(self, "traversal", implied_traversal(self.reports))

	@classmethod
	def full_inventory(cls, output_directory, file_prefix: str, **kwargs) -> 'RunConfig':
		return cls(output_directory, file_prefix, reports=frozenset(ReportKind), **kwargs)

	def is_enabled(self, report: ReportKind) -> bool:
		return report in self.reports

	def traverses(self, parent: NodeKind, child: NodeKind) -> bool:
		return (parent, child) in self.traversal

	def child_kinds(self, kind: NodeKind) -> List[NodeKind]:
		return [child for child in CHILD_ORDER if (kind, child) in self.traversal]

	def report_path(self, report: ReportKind) -> Path:
		return self.output_directory / f"{self.file_prefix}{report.file_name}"

	@property
	def error_file_path(self) -> Path:
		return self.output_directory / f"{self.file_prefix}{ERROR_FILE_NAME}"

	def validate(self):
		"""Raises ValueError when the run cannot produce any output."""
		if not str(self.output_directory) or str(self.output_directory) == ".":
			raise ValueError("An output directory is required")
		if not self.file_prefix:
			raise ValueError("A file prefix is required")
		if not self.reports:
			logger.warning("No reports enabled; only the error log will be written")

	def to_dict(self) -> dict:
		return {
			"output_directory": str(self.output_directory),
			"file_prefix": self.file_prefix,
			"reports": sorted(r.value for r in self.reports),
			"clear_prior_logs": self.clear_prior_logs,
			"include_subweb_sizes": self.include_subweb_sizes,
		}

	@classmethod
	def from_dict(cls, data: dict) -> 'RunConfig':
		known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k != "traversal"}
		known.setdefault("output_directory", "")
		known.setdefault("file_prefix", "")
		return cls(**known)

	def save(self, path: Path):
		"""Save the run profile to a JSON file."""
		path = Path(path)
		path.parent.mkdir(parents=True, exist_ok=True)
		with open(path, 'w', encoding='utf-8') as f:
			json.dump(self.to_dict(), f, indent=2)
		logger.debug(f"Saved run profile to {path}")

	@classmethod
	def load(cls, path: Path) -> dict:
		"""
		Load a run profile from JSON. Returns the raw settings so callers can
		overlay command-line values before building the frozen config.
		"""
		path = Path(path)
		if not path.exists():
			logger.debug(f"No run profile found at {path}, using defaults")
			return {}

		try:
			with open(path, 'r', encoding='utf-8') as f:
				data = json.load(f)
		except (json.JSONDecodeError, IOError) as e:
			logger.warning(f"Failed to load run profile: {e}, using defaults")
			return {}

		if not isinstance(data, dict):
			logger.warning(f"Run profile {path} is not a JSON object, using defaults")
			return {}
		return {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k != "traversal"}
