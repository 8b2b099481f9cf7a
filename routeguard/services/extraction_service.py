"""Extraction service — compiles the route registry into the permission artifact.

The artifact is committed alongside the code, so the output must be
byte-stable for unchanged input and is only rewritten when its content
actually changes.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from routeguard.core.exceptions import ExtractionShapeError
from routeguard.services.route_tree import RouteTree

logger = logging.getLogger("routeguard")

DECLARATION_KEY = "routeRegistry"

# UI wiring that never belongs in the artifact
EXCLUDED_FIELDS = frozenset({"component", "icon"})

_SKIP = object()


@dataclass
class ExtractionResult:
    route_count: int
    written: bool
    output_path: Path


class ExtractionService:
    """Reads the registry declaration and writes the canonical artifact."""

    @staticmethod
    def load_declaration(source_path: Union[str, Path]) -> list:
        """Return the ``routeRegistry`` array from a registry source file.

        Raises:
            ExtractionShapeError: if the file is missing or unreadable, or
                the declaration is absent or not an array.
        """
        source_path = Path(source_path)
        logger.info("Reading route registry: %s", source_path)
        try:
            document = json.loads(source_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ExtractionShapeError(f"Route registry not found at {source_path}")
        except json.JSONDecodeError as e:
            raise ExtractionShapeError(f"Route registry is not valid JSON: {e}")
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractionShapeError(f"Route registry at {source_path} is unreadable: {e}")

        if not isinstance(document, dict) or DECLARATION_KEY not in document:
            raise ExtractionShapeError(f"Could not find '{DECLARATION_KEY}' declaration in {source_path}")
        routes = document[DECLARATION_KEY]
        if not isinstance(routes, list):
            raise ExtractionShapeError(f"'{DECLARATION_KEY}' must be an array of routes")
        return routes

    @staticmethod
    def compile_routes(routes: Any) -> list[dict]:
        """Canonicalize route records, keeping literal values only.

        Key and element order are preserved exactly as declared.
        """
        if not isinstance(routes, list):
            raise ExtractionShapeError(f"'{DECLARATION_KEY}' must be an array of routes")
        records = []
        for position, route in enumerate(routes):
            if not isinstance(route, dict):
                raise ExtractionShapeError(f"Route {DECLARATION_KEY}[{position}] is not a record")
            records.append(_compile_record(route, f"{DECLARATION_KEY}[{position}]"))
        # Structural validation; raises before anything is written
        RouteTree.from_records(records)
        return records

    @staticmethod
    def render_artifact(records: list[dict]) -> str:
        return json.dumps(records, indent=2, ensure_ascii=False) + "\n"

    @staticmethod
    def write_if_changed(output_path: Union[str, Path], content: str) -> bool:
        """Atomically replace ``output_path`` unless it already holds ``content``."""
        output_path = Path(output_path)
        if output_path.exists():
            try:
                if output_path.read_text(encoding="utf-8") == content:
                    return False
            except UnicodeDecodeError:
                logger.warning("Existing artifact %s is not UTF-8, rewriting", output_path)
            except OSError as e:
                raise ExtractionShapeError(f"Existing artifact at {output_path} is unreadable: {e}")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, output_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return True

    def extract(self, source_path: Union[str, Path], output_path: Union[str, Path]) -> ExtractionResult:
        """Compile ``source_path`` and write the artifact to ``output_path`` if it changed."""
        records = self.compile_routes(self.load_declaration(source_path))
        logger.info("Found %d top-level routes", len(records))

        written = self.write_if_changed(output_path, self.render_artifact(records))
        if written:
            logger.info("Wrote route permissions to %s", output_path)
        else:
            logger.info("No changes detected in route permissions, skipping write")
        return ExtractionResult(route_count=len(records), written=written, output_path=Path(output_path))


def _compile_record(record: dict, where: str) -> dict:
    out = {}
    for key, value in record.items():
        if key in EXCLUDED_FIELDS:
            continue
        if key == "children":
            if not isinstance(value, list):
                raise ExtractionShapeError(f"Route {where} has non-array 'children'")
            children = []
            for position, child in enumerate(value):
                if not isinstance(child, dict):
                    raise ExtractionShapeError(f"Route {where}.children[{position}] is not a record")
                children.append(_compile_record(child, f"{where}.children[{position}]"))
            out[key] = children
            continue
        compiled = _compile_value(value)
        if compiled is not _SKIP:
            out[key] = compiled
    return out


def _compile_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        items = (_compile_value(v) for v in value)
        return [v for v in items if v is not _SKIP]
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if not isinstance(key, str) or key in EXCLUDED_FIELDS:
                continue
            compiled = _compile_value(item)
            if compiled is not _SKIP:
                out[key] = compiled
        return out
    # callables, icon objects, anything without a literal form
    return _SKIP


extraction_service = ExtractionService()


def load_route_tree(source_path: Union[str, Path]) -> RouteTree:
    """Compile the registry in memory (no artifact write) and index it."""
    records = extraction_service.compile_routes(extraction_service.load_declaration(source_path))
    return RouteTree.from_records(records)
