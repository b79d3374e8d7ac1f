import csv
from pathlib import Path
from typing import List

import pytest

from sources import SnapshotSource
from spinventory import Inventory, ReportKind, RunConfig


def node(kind: str, location: str, *children, **attributes) -> dict:
	"""Builds one snapshot node; keyword arguments become its attribute bag."""
	raw = {"kind": kind, "location": location, "attributes": attributes}
	if children:
		raw["children"] = list(children)
	return raw


def read_rows(path: Path) -> List[List[str]]:
	with open(path, newline="", encoding="utf-8") as f:
		return list(csv.reader(f))


def make_config(tmp_path: Path, *reports: ReportKind, **kwargs) -> RunConfig:
	return RunConfig(tmp_path / "out", "Test_", reports=frozenset(reports), **kwargs)


def run(config: RunConfig, data: dict, visitors=None):
	return Inventory(config, SnapshotSource(data), visitors).run()


@pytest.fixture
def farm() -> dict:
	"""A small farm: one web application, one site collection, a root web with one subweb."""
	items = node(
		"List", "https://portal/sites/hr/Shared Documents",
		node("Field", "https://portal/sites/hr/Shared Documents#Title",
			 Id="fa564e0f", Title="Title", InternalName="Title", TypeAsString="Text",
			 Required=True, Hidden=False, ReadOnlyField=False, Group="Core"),
		node("ListItem", "https://portal/sites/hr/Shared Documents/Policy.docx",
			 Id=1, UniqueId="b1", Name="Policy.docx", Url="/sites/hr/Shared Documents/Policy.docx",
			 ContentType="Document", Created="2020-01-01T00:00:00Z", Modified="2021-01-01T00:00:00Z",
			 Author="Ann", Editor="Bob", FileSize=2048, Version="3.0"),
		node("Folder", "https://portal/sites/hr/Shared Documents/Archive",
			 node("ListItem", "https://portal/sites/hr/Shared Documents/Archive/Old.docx",
				  Id=3, UniqueId="b3", Name="Old.docx", Url="/sites/hr/Shared Documents/Archive/Old.docx"),
			 Id=2, UniqueId="b2", Name="Archive", Url="/sites/hr/Shared Documents/Archive"),
		Id="list-1", Title="Documents", BaseTemplate=101, ItemCount=2, Hidden=False,
		Created="2019-05-01T00:00:00Z", EnableVersioning=True,
	)
	subweb = node(
		"Site", "https://portal/sites/hr/benefits",
		Id="web-2", Title="Benefits", WebTemplate="STS", Configuration=0,
		Created="2019-06-01T00:00:00Z",
	)
	root_web = node(
		"Site", "https://portal/sites/hr",
		items, subweb,
		Id="web-1", Title="Human Resources", WebTemplate="STS", Configuration=0,
		Created="2019-05-01T00:00:00Z",
	)
	site = node(
		"SiteCollection", "https://portal/sites/hr",
		root_web,
		node("User", "i:0#.w|corp\\ann", LoginName="i:0#.w|corp\\ann", Title="Ann", Email="ann@corp"),
		Id="site-1", Owner="corp\\ann",
	)
	webapp = node("WebApplication", "https://portal", site, Id="wa-1", Name="Portal")
	return node(
		"Farm", "SPFARM",
		node("Solution", "contoso.wsp", Name="contoso.wsp", SolutionId="sol-1", Deployed=True),
		webapp,
	)


@pytest.fixture
def sites_and_lists():
	"""N=3 sites (a root web with two subwebs), each holding M=2 lists with one field each."""
	def make_lists(web_url):
		return [
			node("List", f"{web_url}/Lists/L{i}",
				 node("Field", f"{web_url}/Lists/L{i}#Title", Title="Title", InternalName="Title"),
				 Title=f"L{i}")
			for i in range(2)
		]

	sub_a = node("Site", "https://portal/a", *make_lists("https://portal/a"), Title="A")
	sub_b = node("Site", "https://portal/b", *make_lists("https://portal/b"), Title="B")
	root_web = node("Site", "https://portal", *make_lists("https://portal"), sub_a, sub_b, Title="Root")
	return node("Farm", "SPFARM",
				node("WebApplication", "https://portal",
					 node("SiteCollection", "https://portal", root_web)))
