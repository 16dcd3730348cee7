"""
Download records of a schema to files, embedding each record's identity in
its file.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from logging import Logger
from pathlib import Path
from typing import Iterable

from lxml import etree
from pydantic import ValidationError

from ..core.metadata import (
    LABEL_ATTRIBUTE,
    get_codec,
    parse_xml,
    strip_query_namespace,
)
from ..core.names import InternalName, to_filesystem_path
from ..core.schema import SchemaDescriptor, SchemaRegistry
from ..core.session import Backend
from ..core.template import Template

__all__ = [
    "DownloadStats",
    "download",
    "reconstruct",
    "locate_code",
]


@dataclass(kw_only=True)
class DownloadStats:
    """
    Encapsulates statistics for download operation.
    """

    schema_id: str

    paths: list[Path] = field(default_factory=list)
    """
    Files written, in query order.
    """

    @property
    def file_count(self) -> int:
        return len(self.paths)


def download(
    backend: Backend,
    registry: SchemaRegistry,
    schema_id: str,
    output_dir: Path,
    *,
    conditions: Iterable[str] = (),
    schema_subdirectory: bool = False,
    logger: Logger | None = None,
) -> DownloadStats:
    """
    Query all records of the schema matching the conditions and write each
    one to a file under `output_dir`, overwriting existing files.

    Raises `UnknownSchemaError` before querying if the schema isn't
    registered; a `QueryError` from the backend aborts the download before
    anything is written.
    """

    logger = logger or logging.getLogger()
    descriptor = registry.lookup(schema_id)

    out_dir = (
        output_dir / descriptor.subdirectory
        if schema_subdirectory
        else output_dir
    )

    rows = backend.query(schema_id, descriptor.query_fields, list(conditions))
    logger.debug(f"Query of {schema_id} returned {len(rows)} rows")

    codec = get_codec(descriptor.file_type, registry)
    stats = DownloadStats(schema_id=schema_id)

    for row in rows:
        try:
            template = reconstruct(row, descriptor)
        except ValidationError:
            logger.warning(f"Skipping {schema_id} record without a name")
            continue
        assert template.name is not None

        path = to_filesystem_path(
            template.name, descriptor.file_type.extension, out_dir
        )
        if not _is_contained(path, out_dir):
            logger.warning(
                f"Skipping {template.display_name}: path '{path}' is outside '{out_dir}'"
            )
            continue

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(codec.insert_metadata(template))

        logger.debug(f"Wrote {template.display_name} to '{path}'")
        stats.paths.append(path)

    logger.info(f"{stats.file_count} files downloaded.")

    return stats


def reconstruct(row: str, descriptor: SchemaDescriptor) -> Template:
    """
    Build template from a row returned by a query.
    """
    root = parse_xml(row)

    namespace = (
        root.get(descriptor.namespace_attribute)
        if descriptor.namespace_attribute
        else None
    )
    name = InternalName(
        namespace=namespace or None,
        name=root.get(descriptor.name_attribute, ""),
    )

    return Template(
        schema_id=descriptor.schema_id,
        name=name,
        label=root.get(LABEL_ATTRIBUTE),
        code=locate_code(root, descriptor),
    )


def locate_code(root: etree._Element, descriptor: SchemaDescriptor) -> str:
    """
    Get code of a queried record according to the schema's code locator.
    A missing element along the path results in empty code.
    """
    if descriptor.is_xml:
        # the record is itself the code
        strip_query_namespace(root)
        return etree.tostring(root, encoding="unicode")

    if descriptor.is_attribute_locator:
        return root.get(descriptor.attribute_name, "")

    node: etree._Element | None = root
    for step in descriptor.element_path:
        node = next(
            (
                child
                for child in node
                if isinstance(child.tag, str)
                and etree.QName(child).localname == step
            ),
            None,
        )
        if node is None:
            return ""

    return "".join(node.itertext())


def _is_contained(path: Path, directory: Path) -> bool:
    """
    Check that `path` stays under `directory`, rejecting relative or absolute
    segments which would place it elsewhere.
    """
    prefix, relative = (
        path.parts[: len(directory.parts)],
        path.parts[len(directory.parts) :],
    )
    if prefix != directory.parts or ".." in relative:
        return False

    return path.resolve().is_relative_to(directory.resolve())
