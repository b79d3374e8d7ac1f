import json

import pytest

from spinventory.config import ReportKind, RunConfig, implied_traversal
from spinventory.models import NodeKind


class TestImpliedTraversal:
	"""Enabling a deep report walks every level above it."""

	def test_list_fields_walks_to_the_root(self):
		edges = implied_traversal([ReportKind.LIST_FIELDS])
		assert edges == {
			(NodeKind.FARM, NodeKind.WEB_APPLICATION),
			(NodeKind.WEB_APPLICATION, NodeKind.SITE_COLLECTION),
			(NodeKind.SITE_COLLECTION, NodeKind.SITE),
			(NodeKind.SITE, NodeKind.SITE),
			(NodeKind.SITE, NodeKind.LIST),
			(NodeKind.LIST, NodeKind.FIELD),
		}

	def test_list_items_follow_folders(self):
		edges = implied_traversal([ReportKind.LIST_ITEMS])
		assert (NodeKind.LIST, NodeKind.FOLDER) in edges
		assert (NodeKind.FOLDER, NodeKind.FOLDER) in edges
		assert (NodeKind.FOLDER, NodeKind.LIST_ITEM) in edges
		assert (NodeKind.LIST, NodeKind.FIELD) not in edges

	def test_farm_reports_do_not_descend(self):
		edges = implied_traversal([ReportKind.FARM_SOLUTIONS])
		assert edges == {(NodeKind.FARM, NodeKind.SOLUTION)}

	def test_content_type_workflows_route_through_lists(self):
		edges = implied_traversal([ReportKind.CONTENT_TYPE_WORKFLOW_ASSOCIATIONS])
		assert (NodeKind.LIST, NodeKind.CONTENT_TYPE) in edges
		assert (NodeKind.CONTENT_TYPE, NodeKind.WORKFLOW_ASSOCIATION) in edges
		assert (NodeKind.SITE, NodeKind.CONTENT_TYPE) not in edges

	def test_nothing_enabled_walks_nothing(self):
		assert implied_traversal([]) == frozenset()


class TestRunConfig:
	def test_child_kinds_follow_walk_order(self, tmp_path):
		config = RunConfig(tmp_path, "X_", reports={ReportKind.WEBS, ReportKind.LISTS, ReportKind.WEB_FEATURES})
		assert config.child_kinds(NodeKind.SITE) == [NodeKind.FEATURE, NodeKind.LIST, NodeKind.SITE]

	def test_full_inventory_enables_every_report(self, tmp_path):
		config = RunConfig.full_inventory(tmp_path, "X_")
		assert config.reports == frozenset(ReportKind)
		assert all(config.is_enabled(r) for r in ReportKind)

	def test_report_paths(self, tmp_path):
		config = RunConfig(tmp_path, "Farm1_")
		assert config.report_path(ReportKind.LISTS) == tmp_path / "Farm1_Lists.csv"
		assert config.error_file_path == tmp_path / "Farm1_ErrorFile.txt"

	def test_reports_accept_names(self, tmp_path):
		config = RunConfig(tmp_path, "X_", reports=["Lists", "Webs"])
		assert config.reports == {ReportKind.LISTS, ReportKind.WEBS}

	def test_config_is_frozen(self, tmp_path):
		config = RunConfig(tmp_path, "X_")
		with pytest.raises(AttributeError):
			config.file_prefix = "Y_"

	def test_validate_requires_prefix(self, tmp_path):
		with pytest.raises(ValueError):
			RunConfig(tmp_path, "").validate()

	def test_validate_requires_directory(self):
		with pytest.raises(ValueError):
			RunConfig("", "X_").validate()


class TestFlags:
	@pytest.mark.parametrize("report, flag", [
		(ReportKind.LIST_FIELDS, "inventory-list-fields"),
		(ReportKind.WEBS, "inventory-webs"),
		(ReportKind.ALTERNATE_ACCESS_MAPPINGS, "inventory-alternate-access-mappings"),
		(ReportKind.CONTENT_TYPE_WORKFLOW_ASSOCIATIONS, "inventory-content-type-workflow-associations"),
	])
	def test_flag_names(self, report, flag):
		assert report.flag == flag


class TestProfiles:
	def test_save_and_load(self, tmp_path):
		config = RunConfig(tmp_path / "out", "P_", reports={ReportKind.LISTS}, clear_prior_logs=True)
		profile = tmp_path / "profile.json"
		config.save(profile)

		loaded = RunConfig.from_dict(RunConfig.load(profile))
		assert loaded == config

	def test_missing_profile_is_empty(self, tmp_path):
		assert RunConfig.load(tmp_path / "missing.json") == {}

	def test_malformed_profile_is_empty(self, tmp_path):
		profile = tmp_path / "bad.json"
		profile.write_text("{not json", encoding="utf-8")
		assert RunConfig.load(profile) == {}

	def test_unknown_keys_are_ignored(self, tmp_path):
		profile = tmp_path / "profile.json"
		profile.write_text(json.dumps({"file_prefix": "Q_", "colour": "blue", "traversal": []}), encoding="utf-8")
		assert RunConfig.load(profile) == {"file_prefix": "Q_"}
