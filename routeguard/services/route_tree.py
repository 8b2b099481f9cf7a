"""Route tree — the navigation hierarchy flattened into an indexed arena.

Every node is stored once, in pre-order, with an explicit ``parent_index``.
The effective permission of each node (own permission, else the nearest
ancestor's) is resolved when the tree is built, so lookups never walk
ancestors.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence

from routeguard.core.access import ACTIONS, RequiredPermission, split_route_key
from routeguard.core.exceptions import ExtractionShapeError


@dataclass
class RouteEntry:
    index: int
    parent_index: Optional[int]
    path: str
    route_id: Optional[str] = None
    label: Optional[str] = None
    group: Optional[str] = None
    permission: Optional[RequiredPermission] = None
    effective_permission: Optional[RequiredPermission] = None
    api_dependencies: tuple[str, ...] = ()
    show_in_sidebar: bool = True
    redirect: Optional[str] = None
    children: list[int] = field(default_factory=list)

    @property
    def segments(self) -> list[str]:
        return [s for s in self.path.split("/") if s]


class RouteTree:
    """Indexed, read-only view of the route registry."""

    def __init__(self, entries: list[RouteEntry]):
        self.entries = entries
        self._by_path: dict[str, RouteEntry] = {}
        for entry in entries:
            # First declaration wins when the same path is nested in two sections
            self._by_path.setdefault(entry.path, entry)

    @classmethod
    def from_records(cls, records: Sequence[Any]) -> "RouteTree":
        """Build the arena from extracted route records.

        Raises:
            ExtractionShapeError: on malformed nodes, duplicate sibling
                paths, or actions outside the vocabulary.
        """
        if not isinstance(records, (list, tuple)):
            raise ExtractionShapeError("Route registry must be an array of route records")

        entries: list[RouteEntry] = []

        def visit(nodes, parent: Optional[RouteEntry], trail: str) -> list[int]:
            seen_paths: set[str] = set()
            indices: list[int] = []
            for position, node in enumerate(nodes):
                where = f"{trail}[{position}]"
                if not isinstance(node, dict):
                    raise ExtractionShapeError(f"Route {where} is not a record")
                path = node.get("path")
                if not isinstance(path, str) or not path:
                    raise ExtractionShapeError(f"Route {where} has no 'path'")
                if path in seen_paths:
                    raise ExtractionShapeError(f"Duplicate sibling path '{path}' at {where}")
                seen_paths.add(path)

                own = _parse_permission(node.get("permission"), where)
                inherited = parent.effective_permission if parent else None
                entry = RouteEntry(
                    index=len(entries),
                    parent_index=parent.index if parent else None,
                    path=path,
                    route_id=node.get("id"),
                    label=node.get("label"),
                    group=node.get("group"),
                    permission=own,
                    effective_permission=own or inherited,
                    api_dependencies=_parse_api_dependencies(node.get("apiDependencies"), where),
                    show_in_sidebar=node.get("showInSidebar", True) is not False,
                    redirect=node.get("redirect"),
                )
                entries.append(entry)
                indices.append(entry.index)

                children = node.get("children") or []
                if not isinstance(children, list):
                    raise ExtractionShapeError(f"Route {where} has non-array 'children'")
                entry.children = visit(children, entry, f"{where}.children")
            return indices

        visit(records, None, "routeRegistry")
        return cls(entries)

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def roots(self) -> list[RouteEntry]:
        return [e for e in self.entries if e.parent_index is None]

    def children_of(self, entry: RouteEntry) -> list[RouteEntry]:
        return [self.entries[i] for i in entry.children]

    def parent_of(self, entry: RouteEntry) -> Optional[RouteEntry]:
        if entry.parent_index is None:
            return None
        return self.entries[entry.parent_index]

    def entry_for_path(self, path: str) -> Optional[RouteEntry]:
        """Look up a node by its declared path pattern."""
        return self._by_path.get(path)

    def effective_permission(self, path: str) -> Optional[RequiredPermission]:
        entry = self.entry_for_path(path)
        return entry.effective_permission if entry else None

    def match(self, url: str) -> Optional[RouteEntry]:
        """Resolve a concrete URL to the node whose pattern matches it.

        Literal segments beat ``:param`` segments; ties go to the node
        declared first.
        """
        exact = self._by_path.get(url)
        if exact is not None:
            return exact
        parts = [s for s in url.split("?")[0].split("/") if s]
        best: Optional[RouteEntry] = None
        best_params = None
        for entry in self.entries:
            segments = entry.segments
            if len(segments) != len(parts):
                continue
            params = 0
            for pattern, value in zip(segments, parts):
                if pattern.startswith(":"):
                    params += 1
                elif pattern != value:
                    break
            else:
                if best_params is None or params < best_params:
                    best, best_params = entry, params
        return best

    def modules(self) -> list[str]:
        """Distinct permission modules in first-seen order."""
        seen: dict[str, None] = {}
        for entry in self.entries:
            if entry.permission:
                seen.setdefault(entry.permission.module, None)
        return list(seen)

    def entries_for_module(self, module: str) -> list[RouteEntry]:
        return [e for e in self.entries if e.permission and e.permission.module == module]


def _parse_permission(raw: Any, where: str) -> Optional[RequiredPermission]:
    if raw is None:
        return None
    if not isinstance(raw, dict) or not isinstance(raw.get("module"), str) or not raw["module"]:
        raise ExtractionShapeError(f"Route {where} has a malformed 'permission'")
    actions = raw.get("actions") or ["view"]
    if not isinstance(actions, list):
        raise ExtractionShapeError(f"Route {where} permission 'actions' must be an array")
    unknown = [a for a in actions if a not in ACTIONS]
    if unknown:
        raise ExtractionShapeError(f"Route {where} uses unknown actions: {', '.join(map(str, unknown))}")
    return RequiredPermission.from_dict(raw)


def _parse_api_dependencies(raw: Any, where: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ExtractionShapeError(f"Route {where} 'apiDependencies' must be an array")
    for key in raw:
        try:
            split_route_key(key)
        except (ValueError, AttributeError):
            raise ExtractionShapeError(f"Route {where} has invalid API dependency {key!r}")
    return tuple(raw)
