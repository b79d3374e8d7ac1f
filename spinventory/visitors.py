import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Tuple, TYPE_CHECKING

from .config import ReportKind
from .models import Node, NodeKind, Record
from .sink import clean_field
from .summary import PermissionVisitor, SizeVisitor

if TYPE_CHECKING:
	from .walker import WalkContext

logger = logging.getLogger(__name__)


@dataclass
class Visit:
	"""What one visitor produced for one node: rows to write and children to walk."""
	records: Iterable[Tuple[ReportKind, Record]]
	children: Iterable[Node]


def ancestor(node: Node, kind: NodeKind) -> Optional[Node]:
	current = node.parent
	while current is not None and current.kind != kind:
		current = current.parent
	return current


def ancestor_location(node: Node, kind: NodeKind) -> str:
	found = ancestor(node, kind)
	return found.location if found is not None else ""


def parent_location(node: Node) -> str:
	return node.parent.location if node.parent is not None else ""


def render(row: dict) -> Record:
	return {column: clean_field(value) for column, value in row.items()}


class NodeVisitor:
	"""
	Maps one node kind's attribute bag onto a fixed column list.

	Subclasses set `kind` and `report` and implement `row()`. A visitor whose
	report depends on where the node sits overrides `report_for()`.
	"""
	kind: NodeKind = None
	report: Optional[ReportKind] = None
	# Logged at INFO rather than DEBUG when visited.
	progress = False

	def report_for(self, node: Node) -> Optional[ReportKind]:
		return self.report

	def row(self, node: Node) -> Record:
		raise NotImplementedError

	def records(self, node: Node, context: 'WalkContext') -> Iterator[Tuple[ReportKind, Record]]:
		report = self.report_for(node)
		if report is not None and context.config.is_enabled(report):
			yield report, render(self.row(node))

	def child_kinds(self, node: Node, context: 'WalkContext') -> Iterable[NodeKind]:
		return context.config.child_kinds(node.kind)

	def children(self, node: Node, context: 'WalkContext') -> Iterator[Node]:
		for kind in self.child_kinds(node, context):
			try:
				yield from context.source.children(node, kind)
			except Exception as e:
				context.errors.record(node.location, f"{kind.value} enumeration", e)

	def visit(self, node: Node, context: 'WalkContext') -> Visit:
		return Visit(self.records(node, context), self.children(node, context))


class FarmVisitor(NodeVisitor):
	kind = NodeKind.FARM

	def records(self, node, context):
		return iter(())


class SolutionVisitor(NodeVisitor):
	kind = NodeKind.SOLUTION
	report = ReportKind.FARM_SOLUTIONS

	def row(self, node):
		return {
			"Name": node.get("Name"),
			"SolutionId": node.get("SolutionId", node.id),
			"Deployed": node.get("Deployed"),
			"DeploymentState": node.get("DeploymentState"),
			"LastOperationResult": node.get("LastOperationResult"),
			"LastOperationEndTime": node.get("LastOperationEndTime"),
		}


class FeatureDefinitionVisitor(NodeVisitor):
	kind = NodeKind.FEATURE_DEFINITION
	report = ReportKind.FARM_FEATURES

	def row(self, node):
		return {
			"DisplayName": node.get("DisplayName"),
			"Id": node.get("Id", node.id),
			"Scope": node.get("Scope"),
			"Hidden": node.get("Hidden"),
			"Version": node.get("Version"),
			"SolutionId": node.get("SolutionId"),
		}


class WebTemplateVisitor(NodeVisitor):
	kind = NodeKind.WEB_TEMPLATE
	report = ReportKind.WEB_TEMPLATES

	def row(self, node):
		return {
			"Name": node.get("Name"),
			"Title": node.get("Title"),
			"Id": node.get("Id"),
			"Lcid": node.get("Lcid"),
			"IsHidden": node.get("IsHidden"),
			"IsRootWebOnly": node.get("IsRootWebOnly"),
			"IsSubWebOnly": node.get("IsSubWebOnly"),
		}


class WebApplicationVisitor(NodeVisitor):
	kind = NodeKind.WEB_APPLICATION
	report = ReportKind.WEB_APPLICATIONS
	progress = True

	def row(self, node):
		return {
			"Name": node.get("Name"),
			"Id": node.get("Id", node.id),
			"Url": node.get("Url", node.location),
			"ApplicationPool": node.get("ApplicationPool"),
			"Version": node.get("Version"),
		}


class AlternateAccessMappingVisitor(NodeVisitor):
	kind = NodeKind.ALTERNATE_ACCESS_MAPPING
	report = ReportKind.ALTERNATE_ACCESS_MAPPINGS

	def row(self, node):
		return {
			"WebApplication": parent_location(node),
			"IncomingUrl": node.get("IncomingUrl"),
			"PublicUrl": node.get("PublicUrl"),
			"Zone": node.get("UrlZone"),
		}


class ContentDatabaseVisitor(NodeVisitor):
	kind = NodeKind.CONTENT_DATABASE
	report = ReportKind.CONTENT_DATABASES

	def row(self, node):
		return {
			"WebApplication": parent_location(node),
			"Name": node.get("Name"),
			"Id": node.get("Id", node.id),
			"Server": node.get("Server"),
			"CurrentSiteCount": node.get("CurrentSiteCount"),
			"MaximumSiteCount": node.get("MaximumSiteCount"),
			"DiskSizeRequired": node.get("DiskSizeRequired"),
		}


class SiteCollectionVisitor(NodeVisitor):
	kind = NodeKind.SITE_COLLECTION
	report = ReportKind.SITE_COLLECTIONS
	progress = True

	def row(self, node):
		return {
			"WebApplication": parent_location(node),
			"Url": node.get("Url", node.location),
			"Id": node.get("Id", node.id),
			"Owner": node.get("Owner"),
			"SecondaryContact": node.get("SecondaryContact"),
			"ContentDatabase": node.get("ContentDatabase"),
			"StorageUsed": node.get("StorageUsed"),
			"LastContentModifiedDate": node.get("LastContentModifiedDate"),
		}


class UserVisitor(NodeVisitor):
	kind = NodeKind.USER
	report = ReportKind.SITE_COLLECTION_ADMINS

	def row(self, node):
		return {
			"SiteCollection": parent_location(node),
			"LoginName": node.get("LoginName"),
			"DisplayName": node.get("Title"),
			"Email": node.get("Email"),
		}


class FeatureVisitor(NodeVisitor):
	kind = NodeKind.FEATURE

	def report_for(self, node):
		if node.parent is not None and node.parent.kind == NodeKind.SITE_COLLECTION:
			return ReportKind.SITE_COLLECTION_FEATURES
		return ReportKind.WEB_FEATURES

	def row(self, node):
		scope = "SiteCollection" if self.report_for(node) == ReportKind.SITE_COLLECTION_FEATURES else "Web"
		return {
			scope: parent_location(node),
			"FeatureId": node.get("DefinitionId", node.id),
			"DisplayName": node.get("DisplayName"),
		}


class SiteVisitor(NodeVisitor):
	kind = NodeKind.SITE
	report = ReportKind.WEBS
	progress = True

	def __init__(self, sizes: SizeVisitor = None, permissions: PermissionVisitor = None):
		self.sizes = sizes or SizeVisitor()
		self.permissions = permissions or PermissionVisitor()

	def row(self, node):
		template = node.get("WebTemplate")
		configuration = node.get("Configuration")
		if template != "" and configuration != "":
			template = f"{template}#{configuration}"
		return {
			"SiteCollection": ancestor_location(node, NodeKind.SITE_COLLECTION),
			"Url": node.get("Url", node.location),
			"Id": node.get("Id", node.id),
			"Title": node.get("Title"),
			"WebTemplate": template,
			"ParentWeb": parent_location(node) if node.parent is not None and node.parent.kind == NodeKind.SITE else "",
			"Created": node.get("Created"),
			"LastItemModifiedDate": node.get("LastItemModifiedDate"),
			"HasUniquePermissions": node.get("HasUniqueRoleAssignments", False),
		}

	def records(self, node, context):
		yield from super().records(node, context)
		yield from self.sizes.records(node, context)
		yield from self.permissions.records(node, context)


class ContentTypeVisitor(NodeVisitor):
	kind = NodeKind.CONTENT_TYPE

	def report_for(self, node):
		if node.parent is not None and node.parent.kind == NodeKind.LIST:
			return ReportKind.LIST_CONTENT_TYPES
		return ReportKind.SITE_CONTENT_TYPES

	def row(self, node):
		row = {"Web": ancestor_location(node, NodeKind.SITE)}
		if self.report_for(node) == ReportKind.LIST_CONTENT_TYPES:
			row["List"] = parent_location(node)
		row.update({
			"Name": node.get("Name"),
			"Id": node.get("Id", node.id),
			"Group": node.get("Group"),
			"Hidden": node.get("Hidden"),
			"ReadOnly": node.get("ReadOnly"),
			"Sealed": node.get("Sealed"),
		})
		return row

	def child_kinds(self, node, context):
		# Content-type workflow associations are only reported for list content types.
		if node.parent is None or node.parent.kind != NodeKind.LIST:
			return []
		return super().child_kinds(node, context)


class WorkflowAssociationVisitor(NodeVisitor):
	kind = NodeKind.WORKFLOW_ASSOCIATION

	REPORTS = {
		NodeKind.SITE: ReportKind.WEB_WORKFLOW_ASSOCIATIONS,
		NodeKind.LIST: ReportKind.LIST_WORKFLOW_ASSOCIATIONS,
		NodeKind.CONTENT_TYPE: ReportKind.CONTENT_TYPE_WORKFLOW_ASSOCIATIONS,
	}

	def report_for(self, node):
		if node.parent is None:
			return None
		return self.REPORTS.get(node.parent.kind)

	def row(self, node):
		return {
			"Scope": parent_location(node),
			"Name": node.get("Name"),
			"Id": node.get("Id", node.id),
			"BaseId": node.get("BaseId"),
			"Enabled": node.get("Enabled"),
			"Created": node.get("Created"),
			"Modified": node.get("Modified"),
			"TaskList": node.get("TaskListTitle"),
			"HistoryList": node.get("HistoryListTitle"),
		}


class ListVisitor(NodeVisitor):
	kind = NodeKind.LIST
	report = ReportKind.LISTS

	def __init__(self, permissions: PermissionVisitor = None):
		self.permissions = permissions or PermissionVisitor()

	def row(self, node):
		return {
			"Web": ancestor_location(node, NodeKind.SITE),
			"Title": node.get("Title"),
			"Id": node.get("Id", node.id),
			"Url": node.location,
			"BaseTemplate": node.get("BaseTemplate"),
			"ItemCount": node.get("ItemCount"),
			"Hidden": node.get("Hidden"),
			"Created": node.get("Created"),
			"LastItemModifiedDate": node.get("LastItemModifiedDate"),
			"EnableVersioning": node.get("EnableVersioning"),
			"HasUniquePermissions": node.get("HasUniqueRoleAssignments", False),
		}

	def records(self, node, context):
		yield from super().records(node, context)
		yield from self.permissions.records(node, context)


class FieldVisitor(NodeVisitor):
	kind = NodeKind.FIELD
	report = ReportKind.LIST_FIELDS

	def row(self, node):
		return {
			"List": parent_location(node),
			"Title": node.get("Title"),
			"InternalName": node.get("InternalName"),
			"Id": node.get("Id", node.id),
			"Type": node.get("TypeAsString"),
			"Required": node.get("Required"),
			"Hidden": node.get("Hidden"),
			"ReadOnly": node.get("ReadOnlyField"),
			"Group": node.get("Group"),
		}


class ListItemVisitor(NodeVisitor):
	"""Items and folders share the ListItems report; IsFolder tells them apart."""
	kind = NodeKind.LIST_ITEM
	report = ReportKind.LIST_ITEMS

	def __init__(self, permissions: PermissionVisitor = None):
		self.permissions = permissions or PermissionVisitor()

	def row(self, node):
		return {
			"List": ancestor_location(node, NodeKind.LIST),
			"Id": node.get("Id"),
			"UniqueId": node.get("UniqueId", node.id),
			"Name": node.get("Name"),
			"Url": node.get("Url", node.location),
			"IsFolder": node.kind == NodeKind.FOLDER,
			"ContentType": node.get("ContentType"),
			"Created": node.get("Created"),
			"Modified": node.get("Modified"),
			"Author": node.get("Author"),
			"Editor": node.get("Editor"),
			"FileSize": node.get("FileSize"),
			"Version": node.get("Version"),
		}

	def records(self, node, context):
		yield from super().records(node, context)
		yield from self.permissions.records(node, context)


class FolderVisitor(ListItemVisitor):
	kind = NodeKind.FOLDER


class WebPartVisitor(NodeVisitor):
	kind = NodeKind.WEB_PART
	report = ReportKind.WEB_PARTS

	def row(self, node):
		return {
			"Page": parent_location(node),
			"Id": node.get("Id", node.id),
			"Title": node.get("Title"),
			"ZoneId": node.get("ZoneId"),
			"ZoneIndex": node.get("ZoneIndex"),
			"IsClosed": node.get("IsClosed"),
			"Hidden": node.get("Hidden"),
		}


def default_visitors() -> Dict[NodeKind, NodeVisitor]:
	"""One visitor per node kind, sharing the summary visitors."""
	sizes = SizeVisitor()
	permissions = PermissionVisitor()
	visitors = [
		FarmVisitor(),
		SolutionVisitor(),
		FeatureDefinitionVisitor(),
		WebTemplateVisitor(),
		WebApplicationVisitor(),
		AlternateAccessMappingVisitor(),
		ContentDatabaseVisitor(),
		SiteCollectionVisitor(),
		UserVisitor(),
		FeatureVisitor(),
		SiteVisitor(sizes, permissions),
		ContentTypeVisitor(),
		WorkflowAssociationVisitor(),
		ListVisitor(permissions),
		FieldVisitor(),
		ListItemVisitor(permissions),
		FolderVisitor(permissions),
		WebPartVisitor(),
	]
	return {visitor.kind: visitor for visitor in visitors}
