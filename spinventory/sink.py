import csv
import glob
import logging
from pathlib import Path
from typing import Dict, IO, List

from .config import ReportKind, RunConfig
from .models import ErrorEntry, Record

logger = logging.getLogger(__name__)


def clean_field(value) -> str:
	"""Renders a value for output. Embedded double quotes are dropped, not escaped."""
	if value is None:
		return ""
	if isinstance(value, bool):
		value = "True" if value else "False"
	return str(value).replace('"', '')


def clear_prior_logs(output_directory: Path, file_prefix: str) -> List[Path]:
	"""Deletes `<prefix>*.csv` and `<prefix>*.txt` from the output directory."""
	output_directory = Path(output_directory)
	removed = []
	if not output_directory.is_dir():
		return removed

	prefix = glob.escape(file_prefix)
	for pattern in (f"{prefix}*.csv", f"{prefix}*.txt"):
		for path in sorted(output_directory.glob(pattern)):
			path.unlink()
			removed.append(path)
			logger.debug(f"Removed prior log {path}")

	if removed:
		logger.info(f"Cleared {len(removed)} prior log file(s) from {output_directory}")
	return removed


class _Stream:
	def __init__(self, path: Path):
		self.path = path
		existing = path.exists() and path.stat().st_size > 0
		self.file: IO[str] = open(path, 'a', newline='', encoding='utf-8')
		self.writer = csv.writer(self.file, quoting=csv.QUOTE_ALL, lineterminator="\n")
		self.columns: List[str] = None
		self.header_written = existing

	def close(self):
		self.file.close()


class RecordSink:
	"""
	Appends records to one CSV file per report.

	The header is written on the first write of a run, unless the file already
	holds rows from an earlier run that was not cleared. Every row is flushed as
	soon as it is written so an interrupted run leaves readable files.
	"""

	def __init__(self, config: RunConfig):
		self.config = config
		self._streams: Dict[ReportKind, _Stream] = {}
		self.row_counts: Dict[ReportKind, int] = {}

	def _stream(self, report: ReportKind) -> _Stream:
		stream = self._streams.get(report)
		if stream is None:
			path = self.config.report_path(report)
			path.parent.mkdir(parents=True, exist_ok=True)
			stream = _Stream(path)
			self._streams[report] = stream
			logger.debug(f"Opened report stream {path}")
		return stream

	def write(self, report: ReportKind, record: Record):
		stream = self._stream(report)
		columns = list(record.keys())

		if stream.columns is None:
			stream.columns = columns
		elif columns != stream.columns:
			raise ValueError(
				f"Record for {report.value} has columns {columns}, expected {stream.columns}"
			)

		if not stream.header_written:
			stream.writer.writerow([clean_field(c) for c in columns])
			stream.header_written = True

		stream.writer.writerow([clean_field(v) for v in record.values()])
		stream.file.flush()
		self.row_counts[report] = self.row_counts.get(report, 0) + 1

	def close(self):
		for stream in self._streams.values():
			stream.close()
		self._streams.clear()

	def __enter__(self) -> 'RecordSink':
		return self

	def __exit__(self, exc_type, exc, tb):
		self.close()


class ErrorLog:
	"""Terminal sink for visitation failures. Never raises."""

	def __init__(self, config: RunConfig):
		self.path = config.error_file_path
		self.count = 0
		self._file: IO[str] = None

	def record(self, location: str, area: str, cause) -> ErrorEntry:
		self.count += 1
		try:
			description = _describe(cause)
		except Exception as e:
			description = f"{type(cause).__name__} (unprintable: {type(e).__name__})"
		entry = ErrorEntry(str(location), str(area), description)

		try:
			logger.error(f"{entry.area} failed at {entry.location}: {entry.cause}")
			if self._file is None:
				self.path.parent.mkdir(parents=True, exist_ok=True)
				self._file = open(self.path, 'a', encoding='utf-8')
			self._file.write("\n".join(entry.lines()) + "\n\n")
			self._file.flush()
		except (OSError, ValueError) as e:
			logger.critical(f"Could not write to {self.path}: {e}")

		return entry

	def close(self):
		if self._file is not None:
			self._file.close()
			self._file = None

	def __enter__(self) -> 'ErrorLog':
		return self

	def __exit__(self, exc_type, exc, tb):
		self.close()


def _describe(cause) -> str:
	if isinstance(cause, BaseException):
		message = str(cause)
		return f"{type(cause).__name__}: {message}" if message else type(cause).__name__
	return str(cause)
