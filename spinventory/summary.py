"""
Summary visitors: rows that need more than a node's own attribute bag.

SizeVisitor walks a site's whole folder tree (and optionally its subsites)
before it can emit a single number, so it only runs when the WebSizes report
is enabled. PermissionVisitor emits nothing for nodes that inherit their
permissions; the absence of a row means "inherits".
"""
import logging
from typing import Iterator, Tuple, TYPE_CHECKING

from .config import ReportKind
from .models import Node, NodeKind, Record

if TYPE_CHECKING:
	from .walker import WalkContext

logger = logging.getLogger(__name__)


class SizeVisitor:
	report = ReportKind.WEB_SIZES

	def measure(self, node: Node, source, include_subwebs: bool = False) -> int:
		"""Total length in bytes of every file under the site's root folder."""
		total = 0
		root = source.root_folder(node)
		if root is not None:
			total += self._folder_size(root, source)

		if include_subwebs:
			for sub in source.children(node, NodeKind.SITE):
				with source.borrow(sub):
					total += self.measure(sub, source, include_subwebs=True)

		return total

	def _folder_size(self, folder: Node, source) -> int:
		with source.borrow(folder):
			total = sum(source.file_lengths(folder))
			for sub in source.subfolders(folder):
				total += self._folder_size(sub, source)
			return total

	def records(self, node: Node, context: 'WalkContext') -> Iterator[Tuple[ReportKind, Record]]:
		config = context.config
		if not config.is_enabled(self.report):
			return
		size = self.measure(node, context.source, config.include_subweb_sizes)
		logger.debug(f"Measured {node.location}: {size} bytes")
		yield self.report, {
			"Url": node.location,
			"Id": node.id,
			"SizeBytes": str(size),
			"IncludesSubwebs": str(config.include_subweb_sizes),
		}


class PermissionVisitor:
	REPORTS = {
		NodeKind.SITE: ReportKind.WEB_PERMISSIONS,
		NodeKind.LIST: ReportKind.LIST_PERMISSIONS,
		NodeKind.FOLDER: ReportKind.LIST_ITEM_PERMISSIONS,
		NodeKind.LIST_ITEM: ReportKind.LIST_ITEM_PERMISSIONS,
	}

	def rows(self, node: Node, source) -> Iterator[Record]:
		if not source.has_unique_permissions(node):
			return
		for assignment in source.role_assignments(node):
			yield {
				"Url": node.location,
				"Member": assignment.member,
				"MemberType": assignment.member_type,
				"Roles": ";".join(assignment.roles),
			}

	def records(self, node: Node, context: 'WalkContext') -> Iterator[Tuple[ReportKind, Record]]:
		report = self.REPORTS.get(node.kind)
		if report is None or not context.config.is_enabled(report):
			return
		for row in self.rows(node, context.source):
			yield report, row
