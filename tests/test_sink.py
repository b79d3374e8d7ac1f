import pytest

from conftest import read_rows
from spinventory.config import ReportKind, RunConfig
from spinventory.sink import ErrorLog, RecordSink, clean_field, clear_prior_logs


@pytest.fixture
def config(tmp_path):
	return RunConfig(tmp_path, "T_", reports={ReportKind.LISTS})


def test_header_written_once(config):
	with RecordSink(config) as sink:
		for i in range(5):
			sink.write(ReportKind.LISTS, {"Title": f"List {i}", "ItemCount": str(i)})

	rows = read_rows(config.report_path(ReportKind.LISTS))
	assert rows[0] == ["Title", "ItemCount"]
	assert len(rows) == 6
	assert sum(1 for row in rows if row == ["Title", "ItemCount"]) == 1


def test_every_field_is_quoted(config):
	with RecordSink(config) as sink:
		sink.write(ReportKind.LISTS, {"Title": "Docs", "ItemCount": "3"})

	text = config.report_path(ReportKind.LISTS).read_text(encoding="utf-8")
	assert text == '"Title","ItemCount"\n"Docs","3"\n'


def test_embedded_quotes_are_stripped(config):
	with RecordSink(config) as sink:
		sink.write(ReportKind.LISTS, {"Title": 'The "Big" List', "ItemCount": '"7"'})

	text = config.report_path(ReportKind.LISTS).read_text(encoding="utf-8")
	assert '"The Big List","7"' in text
	for line in text.splitlines():
		# Only the delimiting quotes remain.
		assert line.replace('","', "").strip('"').count('"') == 0


def test_existing_file_keeps_single_header(config):
	with RecordSink(config) as sink:
		sink.write(ReportKind.LISTS, {"Title": "A", "ItemCount": "1"})
	with RecordSink(config) as sink:
		sink.write(ReportKind.LISTS, {"Title": "B", "ItemCount": "2"})

	rows = read_rows(config.report_path(ReportKind.LISTS))
	assert rows == [["Title", "ItemCount"], ["A", "1"], ["B", "2"]]


def test_schema_change_is_rejected(config):
	with RecordSink(config) as sink:
		sink.write(ReportKind.LISTS, {"Title": "A", "ItemCount": "1"})
		with pytest.raises(ValueError):
			sink.write(ReportKind.LISTS, {"Title": "B"})
		assert sink.row_counts[ReportKind.LISTS] == 1


def test_no_file_without_rows(config):
	with RecordSink(config):
		pass
	assert not config.report_path(ReportKind.LISTS).exists()


@pytest.mark.parametrize("value, expected", [
	(None, ""),
	(True, "True"),
	(False, "False"),
	(2048, "2048"),
	('say "hi"', "say hi"),
])
def test_clean_field(value, expected):
	assert clean_field(value) == expected


def test_clear_prior_logs_only_touches_prefix(tmp_path):
	for name in ("T_Lists.csv", "T_ErrorFile.txt", "T_notes.md", "Other_Lists.csv"):
		(tmp_path / name).write_text("x", encoding="utf-8")

	removed = clear_prior_logs(tmp_path, "T_")

	assert sorted(p.name for p in removed) == ["T_ErrorFile.txt", "T_Lists.csv"]
	assert sorted(p.name for p in tmp_path.iterdir()) == ["Other_Lists.csv", "T_notes.md"]


def test_clear_prior_logs_prefix_is_literal(tmp_path):
	for name in ("Run[1]_Webs.csv", "Run[1]_ErrorFile.txt", "Run1_Webs.csv", "RunX_Webs.csv"):
		(tmp_path / name).write_text("x", encoding="utf-8")

	removed = clear_prior_logs(tmp_path, "Run[1]_")

	assert sorted(p.name for p in removed) == ["Run[1]_ErrorFile.txt", "Run[1]_Webs.csv"]
	assert sorted(p.name for p in tmp_path.iterdir()) == ["Run1_Webs.csv", "RunX_Webs.csv"]


def test_clear_prior_logs_wildcard_prefix_matches_nothing_else(tmp_path):
	(tmp_path / "Farm_Webs.csv").write_text("x", encoding="utf-8")

	assert clear_prior_logs(tmp_path, "*") == []
	assert clear_prior_logs(tmp_path, "Fa?m_") == []
	assert (tmp_path / "Farm_Webs.csv").exists()


def test_clear_prior_logs_missing_directory(tmp_path):
	assert clear_prior_logs(tmp_path / "nowhere", "T_") == []


class TestErrorLog:
	def test_writes_one_block_per_error(self, config):
		with ErrorLog(config) as errors:
			errors.record("https://portal/sites/hr", "Site", ValueError("boom"))
			errors.record("https://portal/sites/it", "List", "access denied")

		text = config.error_file_path.read_text(encoding="utf-8")
		assert text == (
			"Location: https://portal/sites/hr\nArea: Site\nError: ValueError: boom\n\n"
			"Location: https://portal/sites/it\nArea: List\nError: access denied\n\n"
		)
		assert errors.count == 2

	def test_returns_entry(self, config):
		with ErrorLog(config) as errors:
			entry = errors.record("loc", "Field", KeyError("Title"))
		assert entry.location == "loc"
		assert entry.area == "Field"
		assert entry.cause == "KeyError: 'Title'"

	def test_never_raises_when_file_cannot_be_written(self, tmp_path):
		config = RunConfig(tmp_path, "T_")
		config.error_file_path.mkdir()

		with ErrorLog(config) as errors:
			entry = errors.record("loc", "Site", RuntimeError("x"))

		assert entry.cause == "RuntimeError: x"
		assert errors.count == 1

	def test_never_raises_on_unprintable_cause(self, config):
		class Unprintable(Exception):
			def __str__(self):
				raise RuntimeError("no text")

		with ErrorLog(config) as errors:
			entry = errors.record("loc", "List", Unprintable())

		assert entry.cause == "Unprintable (unprintable: RuntimeError)"
		assert errors.count == 1
		assert "Error: Unprintable (unprintable: RuntimeError)" in config.error_file_path.read_text(encoding="utf-8")
