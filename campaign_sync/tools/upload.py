"""
Upload files listed in an upload list, grouping them by schema.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from logging import Logger
from pathlib import Path

from ..core.exceptions import (
    CampaignSyncError,
    InputError,
    MissingUploadListError,
)
from ..core.metadata import get_codec
from ..core.payload import build_persist_element
from ..core.schema import ExtensionRegistry, SchemaRegistry
from ..core.session import Backend
from ..core.template import Template
from ..core.transform import get_transformer

__all__ = [
    "COMMENT_MARKER",
    "GroupResult",
    "PersistFailure",
    "UploadStats",
    "read_upload_list",
    "resolve_paths",
    "load_template",
    "load_templates",
    "group_templates",
    "upload",
    "upload_from_list",
]

COMMENT_MARKER = "#"
"""
Lines in an upload list beginning with this are ignored.
"""


@dataclass(frozen=True, kw_only=True)
class PersistFailure:
    """
    Record of a template which failed to upload.
    """

    name: str
    message: str


@dataclass(kw_only=True)
class GroupResult:
    """
    Outcome of uploading all templates of one schema.
    """

    schema_id: str
    names: list[str] = field(default_factory=list)
    attempted: int = 0
    succeeded: int = 0
    failures: list[PersistFailure] = field(default_factory=list)


@dataclass(kw_only=True)
class UploadStats:
    """
    Encapsulates statistics for upload operation.
    """

    dry_run: bool = False
    groups: list[GroupResult] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return sum(g.attempted for g in self.groups)

    @property
    def succeeded(self) -> int:
        return sum(g.succeeded for g in self.groups)

    @property
    def failures(self) -> list[PersistFailure]:
        return [f for g in self.groups for f in g.failures]


def read_upload_list(path: Path) -> list[str]:
    """
    Read entries of an upload list, skipping blank and comment lines.
    """
    if not path.is_file():
        raise MissingUploadListError(path)

    return [
        line.strip()
        for line in path.read_text().splitlines()
        if line.strip() and not line.startswith(COMMENT_MARKER)
    ]


def resolve_paths(
    lines: list[str],
    *,
    base_dir: Path | None = None,
    logger: Logger | None = None,
) -> list[Path]:
    """
    Resolve each entry to files: a file resolves to itself, a folder to the
    files directly inside it, and anything else is treated as a glob
    pattern within its parent folder. Entries matching nothing are logged
    and skipped.
    """

    logger = logger or logging.getLogger()
    paths: list[Path] = []

    for line in lines:
        path = Path(line)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path

        if path.is_file():
            matches = [path]
        elif path.is_dir():
            matches = sorted(p for p in path.iterdir() if p.is_file())
        elif path.parent.is_dir():
            matches = sorted(
                p for p in path.parent.glob(path.name) if p.is_file()
            )
        else:
            matches = []

        if not matches:
            logger.warning(
                f"{line} specified for upload but no matching files found."
            )

        paths += matches

    return paths


def load_template(
    path: Path,
    registry: SchemaRegistry,
    *,
    extensions: ExtensionRegistry | None = None,
    logger: Logger | None = None,
) -> Template | None:
    """
    Read template from file, returning `None` if it can't be uploaded.
    """

    logger = logger or logging.getLogger()
    extensions = extensions or ExtensionRegistry()

    file_type = extensions.resolve(path.suffix)
    if file_type is None:
        logger.warning(f"Unsupported file type: {path}")
        return None

    codec = get_codec(file_type, registry)
    transformer = get_transformer(path.suffix)

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        logger.warning(f"Failed to read {path}: {e}")
        return None

    template = codec.extract_metadata(text)

    if not template.has_metadata:
        logger.warning(f"No metadata found in {path}")
        return None

    if template.schema_id is None:
        logger.warning(f"No schema found in {path}")
        return None

    try:
        template.code = transformer.transform(template.code, path.parent)
    except InputError as e:
        logger.warning(f"Failed to preprocess {path}: {e}")
        return None

    return template


def load_templates(
    paths: list[Path],
    registry: SchemaRegistry,
    *,
    logger: Logger | None = None,
) -> list[Template]:
    """
    Read templates from files, dropping those without metadata or schema.
    """
    extensions = ExtensionRegistry()
    templates = [
        load_template(p, registry, extensions=extensions, logger=logger)
        for p in paths
    ]
    return [t for t in templates if t is not None]


def group_templates(templates: list[Template]) -> dict[str, list[Template]]:
    """
    Group templates by schema, in order of first occurrence.
    """
    groups: dict[str, list[Template]] = {}

    for template in templates:
        assert template.schema_id is not None
        groups.setdefault(template.schema_id, []).append(template)

    return groups


def upload(
    backend: Backend | None,
    registry: SchemaRegistry,
    groups: dict[str, list[Template]],
    *,
    dry_run: bool = False,
    logger: Logger | None = None,
) -> UploadStats:
    """
    Write each group's templates to the backend, one at a time. A failed
    item is recorded and the remaining items are still attempted.

    With `dry_run`, only report what would be uploaded; `backend` is not used
    and may be `None`.
    """

    logger = logger or logging.getLogger()
    stats = UploadStats(dry_run=dry_run)

    for schema_id, templates in groups.items():
        names = [t.display_name for t in templates]

        if dry_run:
            name_list = "\n".join(names)
            logger.info(f"{len(templates)} {schema_id} files found:\n{name_list}")
            stats.groups.append(GroupResult(schema_id=schema_id, names=names))
            continue

        assert backend is not None
        result = _upload_group(backend, registry, schema_id, templates, logger)

        logger.info(
            f"{result.succeeded} of {result.attempted} {schema_id} files uploaded."
        )
        stats.groups.append(result)

    return stats


def upload_from_list(
    backend: Backend | None,
    registry: SchemaRegistry,
    upload_list: Path,
    *,
    dry_run: bool = False,
    logger: Logger | None = None,
) -> UploadStats:
    """
    Read upload list, resolve and load the files it names and upload them.
    Relative entries are resolved against the folder containing the list.
    """
    lines = read_upload_list(upload_list)
    paths = resolve_paths(lines, base_dir=upload_list.parent, logger=logger)
    templates = load_templates(paths, registry, logger=logger)

    return upload(
        backend,
        registry,
        group_templates(templates),
        dry_run=dry_run,
        logger=logger,
    )


def _upload_group(
    backend: Backend,
    registry: SchemaRegistry,
    schema_id: str,
    templates: list[Template],
    logger: Logger,
) -> GroupResult:
    """
    Upload templates of a single schema, folding outcomes into a result.
    """
    result = GroupResult(schema_id=schema_id)

    for template in templates:
        name = template.display_name
        result.names.append(name)
        result.attempted += 1

        try:
            descriptor = registry.lookup(schema_id)
            element = build_persist_element(template, descriptor)
        except CampaignSyncError as e:
            message = str(e)
        else:
            response = backend.write(element)
            if response.success:
                result.succeeded += 1
                continue
            message = response.message or "unknown error"

        logger.warning(f"Upload of {name} failed: {message}")
        result.failures.append(PersistFailure(name=name, message=message))

    return result
