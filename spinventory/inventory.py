import logging
import time
from typing import Dict

from .config import ReportKind, RunConfig
from .models import NodeKind
from .sink import ErrorLog, RecordSink, clear_prior_logs
from .visitors import NodeVisitor
from .walker import TreeWalker, WalkContext

logger = logging.getLogger(__name__)


class Inventory:
	config: RunConfig = None
	source: 'HierarchySource' = None

	def __init__(self, config: RunConfig, source: 'HierarchySource', visitors: Dict[NodeKind, NodeVisitor] = None):
		self.config = config
		self.source = source
		self.visitors = visitors

	def run(self) -> 'RunResult':
		"""
		Walks the whole hierarchy once. Node failures are logged to the error
		file and never end the run; only setup failures (bad config, unwritable
		output folder, unreachable root) raise.
		"""
		self.config.validate()
		self.config.output_directory.mkdir(parents=True, exist_ok=True)

		if self.config.clear_prior_logs:
			clear_prior_logs(self.config.output_directory, self.config.file_prefix)

		enabled = ", ".join(sorted(r.value for r in self.config.reports)) or "none"
		logger.info(f"Starting inventory with {self.source.name} into {self.config.output_directory}")
		logger.info(f"Reports: {enabled}")

		result = RunResult()
		started = time.monotonic()
		with RecordSink(self.config) as sink, ErrorLog(self.config) as errors:
			context = WalkContext(self.config, self.source, sink, errors)
			walker = TreeWalker(context, self.visitors)
			try:
				walker.walk()
			finally:
				result.visits = dict(context.visits)
				result.rows = dict(sink.row_counts)
				result.errors = errors.count
				result.elapsed = time.monotonic() - started

		result.log_summary()
		return result


class RunResult:
	def __init__(self):
		self.visits: Dict[NodeKind, int] = {}
		self.rows: Dict[ReportKind, int] = {}
		self.errors: int = 0
		self.elapsed: float = 0.0

	@property
	def success(self) -> bool:
		return self.errors == 0

	def log_summary(self) -> None:
		for report, count in sorted(self.rows.items(), key=lambda item: item[0].value):
			logger.info(f"{report.value}: {count} row(s)")
		total = sum(self.visits.values())
		if self.errors:
			logger.warning(f"Inventory finished in {self.elapsed:.1f}s: {total} node(s) visited, {self.errors} error(s)")
		else:
			logger.info(f"Inventory finished in {self.elapsed:.1f}s: {total} node(s) visited")
