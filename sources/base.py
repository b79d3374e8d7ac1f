import os
import http.cookiejar
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

import requests

from spinventory.models import Node, NodeKind, RoleAssignment

logger = logging.getLogger(__name__)


class HierarchySource(ABC):
	"""
	Read-only view of a content-management hierarchy.

	The walker only ever borrows nodes from a source: every node handed out by
	`root()` or `children()` is passed back to `release()` exactly once.
	"""

	@property
	@abstractmethod
	def name(self) -> str:
		pass

	@abstractmethod
	def can_handle(self, target: str) -> bool:
		pass

	@abstractmethod
	def open(self, target: str, **options) -> 'HierarchySource':
		"""Returns a source bound to `target` (a snapshot path, a farm URL, ...)."""
		pass

	@abstractmethod
	def root(self) -> Node:
		pass

	@abstractmethod
	def children(self, node: Node, kind: NodeKind) -> Iterable[Node]:
		"""Yields the children of `node` of one kind, in source order."""
		pass

	@abstractmethod
	def role_assignments(self, node: Node) -> Iterable[RoleAssignment]:
		pass

	def has_unique_permissions(self, node: Node) -> bool:
		return bool(node.attributes.get("HasUniqueRoleAssignments", False))

	@abstractmethod
	def root_folder(self, node: Node) -> Optional[Node]:
		"""The root folder of a site, used for size aggregation."""
		pass

	@abstractmethod
	def subfolders(self, folder: Node) -> Iterable[Node]:
		pass

	@abstractmethod
	def file_lengths(self, folder: Node) -> Iterable[int]:
		pass

	def release(self, node: Node):
		"""Frees whatever the source holds for `node`. Most sources hold nothing."""
		pass

	@contextmanager
	def borrow(self, node: Node) -> Iterator[Node]:
		"""Yields `node` and releases it on every exit path."""
		try:
			yield node
		finally:
			self.release(node)

	def close(self):
		pass


class HttpSource(HierarchySource):
	"""Shared plumbing for sources that read over HTTP."""

	def __init__(self):
		self.session = requests.Session()
		self.session.headers.update({
			"Accept": "application/json;odata=verbose",
			"User-Agent": "spinventory/1.0",
		})

	def load_cookies(self, cookie_file: Optional[str] = None):
		"""Loads a Netscape-format cookie file (e.g. exported FedAuth/rtFa cookies) into the session."""
		if not cookie_file:
			return

		if os.path.exists(cookie_file):
			try:
				jar = http.cookiejar.MozillaCookieJar(cookie_file)
				jar.load(ignore_discard=True, ignore_expires=True)
				self.session.cookies.update(jar)
				logger.info(f"[{self.name}] Loaded cookies from {cookie_file}")
			except (OSError, http.cookiejar.LoadError) as e:
				logger.warning(f"[{self.name}] Failed to load cookies file: {e}")
		else:
			logger.warning(f"[{self.name}] Cookie file path provided but not found: {cookie_file}")

	def set_token(self, token: Optional[str]):
		if token:
			self.session.headers["Authorization"] = f"Bearer {token}"

	def _request(self, method: str, url: str, **kwargs) -> requests.Response:
		"""
		Modular request wrapper handling timeouts, status checks, and logging.
		"""
		try:
			kwargs.setdefault("timeout", 60)
			resp = self.session.request(method, url, **kwargs)
			resp.raise_for_status()
			return resp
		except requests.RequestException as e:
			logger.debug(f"[{self.name}] Request failed: {method} {url} - {e}")
			raise

	def close(self):
		self.session.close()
