import logging
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from .config import RunConfig
from .models import Node, NodeKind
from .sink import ErrorLog, RecordSink
from .visitors import NodeVisitor, default_visitors

logger = logging.getLogger(__name__)


@dataclass
class WalkContext:
	"""The root context of one walk, handed to every visitor."""
	config: RunConfig
	source: 'HierarchySource'
	sink: RecordSink
	errors: ErrorLog
	root: Optional[Node] = None
	visits: Counter = field(default_factory=Counter)


class TreeWalker:
	"""
	Depth-first, pre-order walk over a hierarchy.

	Each node is borrowed from the source for the duration of its visit and
	released once its subtree is done, whatever happened. A failing node is
	logged and its subtree abandoned; its siblings are still walked.
	"""

	def __init__(self, context: WalkContext, visitors: Dict[NodeKind, NodeVisitor] = None):
		self.context = context
		self.visitors = visitors if visitors is not None else default_visitors()

	def walk(self) -> Node:
		root = self.context.source.root()
		self.context.root = root
		self.visit(root)
		return root

	@contextmanager
	def _borrowed(self, node: Node) -> Iterator[Node]:
		try:
			yield node
		finally:
			try:
				self.context.source.release(node)
			except Exception as e:
				self.context.errors.record(node.location, f"{node.kind.value} release", e)

	def visit(self, node: Node):
		context = self.context
		with self._borrowed(node):
			visitor = self.visitors.get(node.kind)
			if visitor is None:
				logger.debug(f"No visitor for {node.kind.value}, skipping {node.location}")
				return

			context.visits[node.kind] += 1
			if visitor.progress:
				logger.info(f"Inventorying {node.kind.value}: {node.location}")
			else:
				logger.debug(f"Visiting {node.kind.value}: {node.location}")

			try:
				visit = visitor.visit(node, context)
				# All of a node's rows are built before any is written.
				records = list(visit.records)
				for report, record in records:
					context.sink.write(report, record)
			except Exception as e:
				context.errors.record(node.location, node.kind.value, e)
				return

			for child in visit.children:
				self.visit(child)
