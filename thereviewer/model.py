"""Structured artifact model handed to the engine by the fact extractor.

The extractor owns parsing; the engine only sees these frozen records.
`ArtifactModel.from_dict()` accepts the extractor's JSON wire format:

    {
      "artifact_id": "src/db.py",
      "language": "python",
      "declarations": [{"id": "d1", "kind": "function", "name": "load",
                        "line": 3, "exported": true, "tags": ["untested"]}],
      "control_edges": [{"id": "c1", "kind": "loop", "line": 5, "tags": ["unbounded"]}],
      "resource_sites": [{"id": "r1", "kind": "connection", "line": 4,
                          "exit_paths": ["normal", "error"], "released_on": ["normal"]}],
      "error_sites": [{"id": "e1", "kind": "throw", "line": 9, "handled": false}]
    }
"""

from dataclasses import dataclass, field
from typing import Any

from thereviewer.exceptions import ExtractionFailure
from thereviewer.rules.base import Position

DECLARATION_KINDS = frozenset(["function", "type", "route", "test", "module"])
CONTROL_EDGE_KINDS = frozenset(["branch", "loop", "early-return", "handler"])
ERROR_SITE_KINDS = frozenset(["throw", "return-error", "propagate"])
EXIT_PATH_TAGS = frozenset(["normal", "error", "early-return"])


@dataclass(frozen=True)
class Declaration:
    """A function, type, route, test or module-level declaration."""

    id: str
    kind: str
    name: str
    position: Position
    exported: bool = False
    documented: bool = True
    tags: frozenset[str] = frozenset()
    refs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ControlEdge:
    """Branch, loop, early-return or catch/handler boundary."""

    id: str
    kind: str
    position: Position
    owner: str | None = None
    tags: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ResourceSite:
    """An acquisition with the exit paths it reaches and where it is released.

    complete=False means the extractor could not match a release on every
    reachable exit path and flagged the site as incomplete.
    """

    id: str
    kind: str
    position: Position
    owner: str | None = None
    exit_paths: frozenset[str] = frozenset(["normal"])
    released_on: frozenset[str] = frozenset()
    complete: bool = True

    @property
    def leaking_paths(self) -> frozenset[str]:
        return self.exit_paths - self.released_on

    @property
    def is_leaking(self) -> bool:
        return bool(self.leaking_paths) or not self.complete


@dataclass(frozen=True)
class ErrorSite:
    """throw / return-error / propagate site."""

    id: str
    kind: str
    position: Position
    owner: str | None = None
    handled: bool = True
    tags: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ArtifactModel:
    """Everything the engine knows about one file or module."""

    artifact_id: str
    path: str = ""
    language: str = "unknown"
    declarations: tuple[Declaration, ...] = field(default_factory=tuple)
    control_edges: tuple[ControlEdge, ...] = field(default_factory=tuple)
    resource_sites: tuple[ResourceSite, ...] = field(default_factory=tuple)
    error_sites: tuple[ErrorSite, ...] = field(default_factory=tuple)

    def declaration(self, decl_id: str | None) -> Declaration | None:
        for decl in self.declarations:
            if decl.id == decl_id:
                return decl
        return None

    def declarations_of(self, kind: str) -> tuple[Declaration, ...]:
        return tuple(d for d in self.declarations if d.kind == kind)

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "<memory>") -> "ArtifactModel":
        """Build a model from the extractor's JSON wire format.

        Raises:
            ExtractionFailure: On any structural problem. A malformed model is
                indistinguishable from a failed extraction.
        """
        if not isinstance(data, dict):
            raise ExtractionFailure(source, "Artifact model must be a JSON object")

        artifact_id = data.get("artifact_id")
        if not artifact_id or not isinstance(artifact_id, str):
            raise ExtractionFailure(source, "Artifact model has no artifact_id")

        try:
            declarations = tuple(
                Declaration(
                    id=_site_id(item),
                    kind=_kind(item, DECLARATION_KINDS),
                    name=str(item.get("name", item["id"])),
                    position=_position(item),
                    exported=bool(item.get("exported", False)),
                    documented=bool(item.get("documented", True)),
                    tags=frozenset(item.get("tags", ())),
                    refs=tuple(item.get("refs", ())),
                )
                for item in data.get("declarations", ())
            )
            control_edges = tuple(
                ControlEdge(
                    id=_site_id(item),
                    kind=_kind(item, CONTROL_EDGE_KINDS),
                    position=_position(item),
                    owner=item.get("owner"),
                    tags=frozenset(item.get("tags", ())),
                )
                for item in data.get("control_edges", ())
            )
            resource_sites = tuple(
                ResourceSite(
                    id=_site_id(item),
                    kind=str(item.get("kind", "resource")),
                    position=_position(item),
                    owner=item.get("owner"),
                    exit_paths=_exit_tags(item, "exit_paths", ("normal",)),
                    released_on=_exit_tags(item, "released_on", ()),
                    complete=bool(item.get("complete", True)),
                )
                for item in data.get("resource_sites", ())
            )
            error_sites = tuple(
                ErrorSite(
                    id=_site_id(item),
                    kind=_kind(item, ERROR_SITE_KINDS),
                    position=_position(item),
                    owner=item.get("owner"),
                    handled=bool(item.get("handled", True)),
                    tags=frozenset(item.get("tags", ())),
                )
                for item in data.get("error_sites", ())
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ExtractionFailure(
                source, f"Malformed artifact model for {artifact_id}: {e}"
            ) from e

        return cls(
            artifact_id=artifact_id,
            path=str(data.get("path", artifact_id)),
            language=str(data.get("language", "unknown")),
            declarations=declarations,
            control_edges=control_edges,
            resource_sites=resource_sites,
            error_sites=error_sites,
        )


def _site_id(item: dict) -> str:
    site_id = item["id"]
    if not isinstance(site_id, str) or not site_id:
        raise ValueError(f"site id must be a non-empty string, got {site_id!r}")
    return site_id


def _kind(item: dict, allowed: frozenset[str]) -> str:
    kind = item["kind"]
    if kind not in allowed:
        raise ValueError(f"unknown kind {kind!r} for site {item.get('id')!r}")
    return kind


def _position(item: dict) -> Position:
    line = int(item["line"])
    column = int(item.get("column", 0))
    if line < 1 or column < 0:
        raise ValueError(f"invalid position {line}:{column} for site {item.get('id')!r}")
    return Position(line, column)


def _exit_tags(item: dict, key: str, default: tuple[str, ...]) -> frozenset[str]:
    tags = frozenset(item.get(key, default))
    unknown = tags - EXIT_PATH_TAGS
    if unknown:
        raise ValueError(f"unknown exit path tags {sorted(unknown)} for site {item.get('id')!r}")
    return tags
