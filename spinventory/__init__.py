from .config import ReportKind, RunConfig
from .inventory import Inventory, RunResult
from .models import ErrorEntry, Node, NodeKind, Record, RoleAssignment
from .sink import ErrorLog, RecordSink
from .walker import TreeWalker, WalkContext

__all__ = [
	"ErrorEntry",
	"ErrorLog",
	"Inventory",
	"Node",
	"NodeKind",
	"Record",
	"RecordSink",
	"ReportKind",
	"RoleAssignment",
	"RunConfig",
	"RunResult",
	"TreeWalker",
	"WalkContext",
]
