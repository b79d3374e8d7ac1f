import logging
from typing import Dict, Iterable, Iterator, List, Optional
from urllib.parse import quote, urlparse

from .base import HttpSource
from spinventory.models import Node, NodeKind, RoleAssignment

logger = logging.getLogger(__name__)

PRINCIPAL_TYPES = {
	1: "User",
	2: "DistributionList",
	4: "SecurityGroup",
	8: "SharePointGroup",
}

WEB_FIELDS = "Id,Title,Url,ServerRelativeUrl,WebTemplate,Configuration,Created,LastItemModifiedDate,Language,HasUniqueRoleAssignments"
LIST_FIELDS = "Id,Title,BaseTemplate,BaseType,ItemCount,Hidden,Created,LastItemModifiedDate,EnableVersioning,HasUniqueRoleAssignments,RootFolder/ServerRelativeUrl"
ITEM_FIELDS = "Id,GUID,Title,FileLeafRef,FileRef,FileDirRef,FSObjType,Created,Modified,File_x0020_Size,_UIVersionString,HasUniqueRoleAssignments,ContentType/Name,Author/Title,Editor/Title"

SEARCH_PAGE_SIZE = 500
ITEM_PAGE_SIZE = 500


def _odata_literal(value: str) -> str:
	return str(value).replace("'", "''")


def _results(value) -> list:
	"""Unwraps a verbose OData collection (`{"results": [...]}`) into a list."""
	if isinstance(value, dict):
		return value.get("results") or []
	return value or []


class SharePointRestSource(HttpSource):
	"""
	Reads a live farm through the SharePoint REST API.

	Farm-only objects (solutions, feature definitions, alternate access
	mappings, content databases) have no REST endpoint, so those children come
	back empty. Site collections are discovered through search.
	"""
	name = "SharePoint REST"

	def __init__(self, base_url: str = None, cookies: str = None, token: str = None):
		super().__init__()
		self.base_url = base_url.rstrip("/") if base_url else None
		self.load_cookies(cookies)
		self.set_token(token)

	def can_handle(self, target: str) -> bool:
		return str(target).lower().startswith(("http://", "https://"))

	def open(self, target: str, cookies: str = None, token: str = None, **options) -> 'SharePointRestSource':
		parsed = urlparse(target)
		return SharePointRestSource(f"{parsed.scheme}://{parsed.netloc}", cookies=cookies, token=token)

	def _absolute(self, server_relative_url: str) -> str:
		return f"{self.base_url}{server_relative_url}"

	# --- HTTP helpers ---

	def _get(self, url: str, params: dict = None) -> dict:
		resp = self._request("GET", url, params=params)
		payload = resp.json()
		return payload.get("d", payload)

	def _collection(self, url: str, params: dict = None) -> Iterator[dict]:
		"""Yields every entry of a collection, following `__next` paging links."""
		while url:
			data = self._get(url, params)
			for entry in _results(data):
				yield entry
			url = data.get("__next") if isinstance(data, dict) else None
			params = None

	# --- Hierarchy ---

	def root(self) -> Node:
		if not self.base_url:
			raise ValueError("No farm URL configured")
		host = urlparse(self.base_url).netloc
		return Node(
			kind=NodeKind.FARM,
			id=host,
			location=self.base_url,
			attributes={"Name": host},
			handle={"web": self.base_url},
		)

	def children(self, node: Node, kind: NodeKind) -> Iterable[Node]:
		handler = self._CHILDREN.get((node.kind, kind))
		if handler is None:
			logger.debug(f"[{self.name}] {kind.value} under {node.kind.value} is not exposed over REST")
			return iter(())
		return handler(self, node)

	def _web_applications(self, farm: Node) -> Iterator[Node]:
		host = urlparse(self.base_url).netloc
		yield farm.child(
			NodeKind.WEB_APPLICATION,
			self.base_url,
			self.base_url,
			{"Name": host, "Url": self.base_url},
			handle={"web": self.base_url},
		)

	def _web_templates(self, farm: Node) -> Iterator[Node]:
		url = f"{self.base_url}/_api/web/GetAvailableWebTemplates(lcid=1033,doincludecrosslanguage=true)"
		for t in self._collection(url):
			yield farm.child(NodeKind.WEB_TEMPLATE, t.get("Name", ""), t.get("Name", ""), {
				"Name": t.get("Name"),
				"Title": t.get("Title"),
				"Id": t.get("Id"),
				"Lcid": t.get("Lcid"),
				"IsHidden": t.get("IsHidden"),
				"IsRootWebOnly": t.get("IsRootWebOnly"),
				"IsSubWebOnly": t.get("IsSubWebOnly"),
			})

	def _site_collections(self, webapp: Node) -> Iterator[Node]:
		url = f"{self.base_url}/_api/search/query"
		start = 0
		while True:
			data = self._get(url, params={
				"querytext": "'contentclass:STS_Site'",
				"selectproperties": "'Path,SiteId'",
				"trimduplicates": "false",
				"rowlimit": str(SEARCH_PAGE_SIZE),
				"startrow": str(start),
			})
			table = data["query"]["PrimaryQueryResult"]["RelevantResults"]["Table"]
			rows = _results(table.get("Rows"))
			for row in rows:
				cells = {c["Key"]: c["Value"] for c in _results(row.get("Cells"))}
				path = cells.get("Path")
				if path:
					yield self._site_collection(webapp, path.rstrip("/"))
			if len(rows) < SEARCH_PAGE_SIZE:
				break
			start += SEARCH_PAGE_SIZE

	def _site_collection(self, webapp: Node, url: str) -> Node:
		site = self._get(f"{url}/_api/site", params={
			"$select": "Id,Url,ServerRelativeUrl,Usage,Owner/LoginName,SecondaryContact/LoginName,RootWeb/LastItemModifiedDate",
			"$expand": "Owner,SecondaryContact,RootWeb",
		})
		usage = site.get("Usage") or {}
		return webapp.child(NodeKind.SITE_COLLECTION, site.get("Id", url), url, {
			"Id": site.get("Id"),
			"Url": site.get("Url", url),
			"Owner": (site.get("Owner") or {}).get("LoginName"),
			"SecondaryContact": (site.get("SecondaryContact") or {}).get("LoginName"),
			"ContentDatabase": "",
			"StorageUsed": usage.get("Storage"),
			"LastContentModifiedDate": (site.get("RootWeb") or {}).get("LastItemModifiedDate"),
		}, handle={"web": url, "api": f"{url}/_api/site"})

	def _site_admins(self, site: Node) -> Iterator[Node]:
		url = f"{site.handle['web']}/_api/web/siteusers"
		for user in self._collection(url, params={"$filter": "IsSiteAdmin eq true"}):
			yield site.child(NodeKind.USER, str(user.get("Id", "")), user.get("LoginName", ""), {
				"LoginName": user.get("LoginName"),
				"Title": user.get("Title"),
				"Email": user.get("Email"),
			})

	def _features(self, node: Node) -> Iterator[Node]:
		scope = "site" if node.kind == NodeKind.SITE_COLLECTION else "web"
		for feature in self._collection(f"{node.handle['web']}/_api/{scope}/features"):
			yield node.child(NodeKind.FEATURE, feature.get("DefinitionId", ""), node.location, {
				"DefinitionId": feature.get("DefinitionId"),
				"DisplayName": feature.get("DisplayName"),
			})

	def _web_node(self, parent: Node, web: dict) -> Node:
		url = web.get("Url", "").rstrip("/")
		attributes = {k: web.get(k) for k in WEB_FIELDS.split(",")}
		return parent.child(NodeKind.SITE, web.get("Id", url), url, attributes,
							handle={"web": url, "api": f"{url}/_api/web"})

	def _root_web(self, site: Node) -> Iterator[Node]:
		web = self._get(f"{site.handle['web']}/_api/web", params={"$select": WEB_FIELDS})
		yield self._web_node(site, web)

	def _subwebs(self, web: Node) -> Iterator[Node]:
		for sub in self._collection(f"{web.handle['api']}/webs", params={"$select": WEB_FIELDS}):
			yield self._web_node(web, sub)

	def _lists(self, web: Node) -> Iterator[Node]:
		url = f"{web.handle['api']}/lists"
		for lst in self._collection(url, params={"$select": LIST_FIELDS, "$expand": "RootFolder"}):
			root_url = (lst.get("RootFolder") or {}).get("ServerRelativeUrl", "")
			attributes = {k: lst.get(k) for k in LIST_FIELDS.split(",") if "/" not in k}
			attributes["RootFolder"] = root_url
			api = f"{web.handle['api']}/lists(guid'{lst.get('Id')}')"
			yield web.child(NodeKind.LIST, lst.get("Id", ""), self._absolute(root_url) if root_url else web.location,
							attributes, handle={"web": web.handle["web"], "api": api, "folder": root_url})

	def _fields(self, lst: Node) -> Iterator[Node]:
		for f in self._collection(f"{lst.handle['api']}/fields"):
			yield lst.child(NodeKind.FIELD, f.get("Id", ""), f"{lst.location}#{f.get('InternalName', '')}", {
				k: f.get(k) for k in ("Id", "Title", "InternalName", "TypeAsString", "Required", "Hidden", "ReadOnlyField", "Group")
			})

	def _content_types(self, node: Node) -> Iterator[Node]:
		for ct in self._collection(f"{node.handle['api']}/contenttypes"):
			ct_id = (ct.get("Id") or {}).get("StringValue", "")
			api = f"{node.handle['api']}/contenttypes('{ct_id}')"
			yield node.child(NodeKind.CONTENT_TYPE, ct_id, f"{node.location}#{ct.get('Name', '')}", {
				"Id": ct_id,
				"Name": ct.get("Name"),
				"Group": ct.get("Group"),
				"Hidden": ct.get("Hidden"),
				"ReadOnly": ct.get("ReadOnly"),
				"Sealed": ct.get("Sealed"),
			}, handle={"web": node.handle["web"], "api": api})

	def _workflow_associations(self, node: Node) -> Iterator[Node]:
		for wf in self._collection(f"{node.handle['api']}/workflowassociations"):
			yield node.child(NodeKind.WORKFLOW_ASSOCIATION, wf.get("Id", ""), f"{node.location}#{wf.get('Name', '')}", {
				k: wf.get(k) for k in ("Id", "Name", "BaseId", "Enabled", "Created", "Modified", "TaskListTitle", "HistoryListTitle")
			})

	def _items(self, parent: Node, folder_url: str, folders: bool) -> Iterator[Node]:
		lst = parent if parent.kind == NodeKind.LIST else self._owning_list(parent)
		url = f"{lst.handle['api']}/items"
		params = {
			"$select": ITEM_FIELDS,
			"$expand": "ContentType,Author,Editor",
			"$filter": f"FSObjType eq {1 if folders else 0} and FileDirRef eq '{_odata_literal(folder_url)}'",
			"$top": str(ITEM_PAGE_SIZE),
		}
		kind = NodeKind.FOLDER if folders else NodeKind.LIST_ITEM
		for item in self._collection(url, params=params):
			file_ref = item.get("FileRef", "")
			attributes = {
				"Id": item.get("Id"),
				"UniqueId": item.get("GUID"),
				"Name": item.get("FileLeafRef") or item.get("Title"),
				"Url": file_ref,
				"ContentType": (item.get("ContentType") or {}).get("Name"),
				"Created": item.get("Created"),
				"Modified": item.get("Modified"),
				"Author": (item.get("Author") or {}).get("Title"),
				"Editor": (item.get("Editor") or {}).get("Title"),
				"FileSize": item.get("File_x0020_Size"),
				"Version": item.get("_UIVersionString"),
				"HasUniqueRoleAssignments": item.get("HasUniqueRoleAssignments"),
			}
			yield parent.child(kind, str(item.get("GUID") or item.get("Id")), self._absolute(file_ref),
							   attributes, handle={
								   "web": lst.handle["web"],
								   "api": f"{url}({item.get('Id')})",
								   "list": lst.handle["api"],
								   "folder": file_ref,
							   })

	def _owning_list(self, node: Node) -> Node:
		current = node
		while current is not None and current.kind != NodeKind.LIST:
			current = current.parent
		if current is None:
			raise ValueError(f"{node.location} is not inside a list")
		return current

	def _list_items(self, node: Node) -> Iterator[Node]:
		return self._items(node, node.handle["folder"], folders=False)

	def _list_folders(self, node: Node) -> Iterator[Node]:
		return self._items(node, node.handle["folder"], folders=True)

	def _web_parts(self, item: Node) -> Iterator[Node]:
		file_ref = item.attributes.get("Url") or ""
		if not file_ref.lower().endswith(".aspx"):
			return
		url = (f"{item.handle['web']}/_api/web/GetFileByServerRelativeUrl('{quote(_odata_literal(file_ref))}')"
			   f"/GetLimitedWebPartManager(scope=1)/WebParts")
		for definition in self._collection(url, params={"$expand": "WebPart"}):
			part = definition.get("WebPart") or {}
			yield item.child(NodeKind.WEB_PART, definition.get("Id", ""), item.location, {
				"Id": definition.get("Id"),
				"Title": part.get("Title"),
				"ZoneId": definition.get("ZoneId"),
				"ZoneIndex": part.get("ZoneIndex"),
				"IsClosed": part.get("IsClosed"),
				"Hidden": part.get("Hidden"),
			})

	_CHILDREN = {
		(NodeKind.FARM, NodeKind.WEB_APPLICATION): _web_applications,
		(NodeKind.FARM, NodeKind.WEB_TEMPLATE): _web_templates,
		(NodeKind.WEB_APPLICATION, NodeKind.SITE_COLLECTION): _site_collections,
		(NodeKind.SITE_COLLECTION, NodeKind.USER): _site_admins,
		(NodeKind.SITE_COLLECTION, NodeKind.FEATURE): _features,
		(NodeKind.SITE_COLLECTION, NodeKind.SITE): _root_web,
		(NodeKind.SITE, NodeKind.SITE): _subwebs,
		(NodeKind.SITE, NodeKind.LIST): _lists,
		(NodeKind.SITE, NodeKind.FEATURE): _features,
		(NodeKind.SITE, NodeKind.CONTENT_TYPE): _content_types,
		(NodeKind.SITE, NodeKind.WORKFLOW_ASSOCIATION): _workflow_associations,
		(NodeKind.LIST, NodeKind.FIELD): _fields,
		(NodeKind.LIST, NodeKind.CONTENT_TYPE): _content_types,
		(NodeKind.LIST, NodeKind.WORKFLOW_ASSOCIATION): _workflow_associations,
		(NodeKind.CONTENT_TYPE, NodeKind.WORKFLOW_ASSOCIATION): _workflow_associations,
		(NodeKind.LIST, NodeKind.LIST_ITEM): _list_items,
		(NodeKind.LIST, NodeKind.FOLDER): _list_folders,
		(NodeKind.FOLDER, NodeKind.LIST_ITEM): _list_items,
		(NodeKind.FOLDER, NodeKind.FOLDER): _list_folders,
		(NodeKind.LIST_ITEM, NodeKind.WEB_PART): _web_parts,
	}

	# --- Permissions ---

	def has_unique_permissions(self, node: Node) -> bool:
		if node.attributes.get("HasUniqueRoleAssignments") is not None:
			return bool(node.attributes["HasUniqueRoleAssignments"])
		data = self._get(node.handle["api"], params={"$select": "HasUniqueRoleAssignments"})
		return bool(data.get("HasUniqueRoleAssignments"))

	def role_assignments(self, node: Node) -> Iterable[RoleAssignment]:
		url = f"{node.handle['api']}/roleassignments"
		for assignment in self._collection(url, params={"$expand": "Member,RoleDefinitionBindings"}):
			member = assignment.get("Member") or {}
			yield RoleAssignment(
				member=member.get("LoginName") or member.get("Title", ""),
				member_type=PRINCIPAL_TYPES.get(member.get("PrincipalType"), str(member.get("PrincipalType", ""))),
				roles=[r.get("Name", "") for r in _results(assignment.get("RoleDefinitionBindings"))],
			)

	# --- Size aggregation ---

	def _folder_node(self, parent: Node, web_url: str, server_relative_url: str) -> Node:
		api = f"{web_url}/_api/web/GetFolderByServerRelativeUrl('{quote(_odata_literal(server_relative_url))}')"
		return parent.child(NodeKind.FOLDER, server_relative_url, server_relative_url,
							handle={"web": web_url, "api": api})

	def root_folder(self, node: Node) -> Optional[Node]:
		data = self._get(f"{node.handle['api']}/RootFolder", params={"$select": "ServerRelativeUrl"})
		return self._folder_node(node, node.handle["web"], data.get("ServerRelativeUrl", "/"))

	def subfolders(self, folder: Node) -> Iterable[Node]:
		for sub in self._collection(f"{folder.handle['api']}/Folders", params={"$select": "ServerRelativeUrl"}):
			yield self._folder_node(folder, folder.handle["web"], sub.get("ServerRelativeUrl", ""))

	def file_lengths(self, folder: Node) -> Iterable[int]:
		for f in self._collection(f"{folder.handle['api']}/Files", params={"$select": "Length"}):
			yield int(f.get("Length") or 0)
