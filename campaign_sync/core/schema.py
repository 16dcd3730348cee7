"""
Registry of schemas which can be synchronized, along with the rules
describing where each one keeps its code.
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

from .exceptions import UnknownSchemaError

__all__ = [
    "FileType",
    "SchemaDescriptor",
    "SchemaRegistry",
    "ExtensionRegistry",
]

ATTRIBUTE_MARKER = "@"
"""
Leading marker of a code locator which references an attribute of the
record's root element.
"""


class FileType(Enum):
    """
    Type of file used to store a schema's records on the filesystem.
    """

    HTML = ".html"
    JAVASCRIPT = ".js"
    XML = ".xml"

    @property
    def extension(self) -> str:
        return self.value


class SchemaDescriptor(BaseModel):
    """
    Rules for serializing records of a single schema.
    """

    model_config = ConfigDict(frozen=True)

    schema_id: str
    """
    Schema identifier, e.g. `xtk:jst`.
    """

    file_type: FileType

    code_locator: str
    """
    Either `@attr`, an attribute of the record's root element, or a path of
    element names to descend from the root, e.g. `source/text`.
    """

    name_attribute: str = "name"
    """
    Root attribute holding the record's local name.
    """

    namespace_attribute: str | None = "namespace"
    """
    Root attribute holding the record's namespace, if the schema has one.
    """

    @property
    def is_attribute_locator(self) -> bool:
        return self.code_locator.startswith(ATTRIBUTE_MARKER)

    @property
    def attribute_name(self) -> str:
        assert self.is_attribute_locator
        return self.code_locator[len(ATTRIBUTE_MARKER) :]

    @property
    def element_path(self) -> list[str]:
        assert not self.is_attribute_locator
        return [step for step in self.code_locator.split("/") if step]

    @property
    def local_name(self) -> str:
        """
        Schema name without namespace, also used as the record's element name.
        """
        return self.schema_id.split(":", maxsplit=1)[-1]

    @property
    def subdirectory(self) -> str:
        """
        Folder name used when downloads are separated per schema.
        """
        return self.schema_id.replace(":", "_")

    @property
    def is_xml(self) -> bool:
        return self.file_type is FileType.XML

    @property
    def identity_attributes(self) -> list[str]:
        attributes = [self.name_attribute]
        if self.namespace_attribute:
            attributes.insert(0, self.namespace_attribute)
        return attributes

    @property
    def persist_key(self) -> str:
        """
        Key expression telling the backend how to match an existing record.
        """
        return ",".join(f"@{a}" for a in self.identity_attributes)

    @property
    def query_fields(self) -> list[str]:
        fields = [f"@{a}" for a in self.identity_attributes] + ["@label"]
        if self.code_locator not in fields:
            fields.append(self.code_locator)
        return fields


DEFAULT_SCHEMAS: tuple[SchemaDescriptor, ...] = (
    SchemaDescriptor(
        schema_id="nms:includeView",
        file_type=FileType.HTML,
        code_locator="source/text",
        namespace_attribute=None,
    ),
    SchemaDescriptor(
        schema_id="xtk:form",
        file_type=FileType.XML,
        code_locator="@xtkschema",
    ),
    SchemaDescriptor(
        schema_id="xtk:javascript",
        file_type=FileType.JAVASCRIPT,
        code_locator="data",
    ),
    SchemaDescriptor(
        schema_id="xtk:jst",
        file_type=FileType.HTML,
        code_locator="code",
    ),
    SchemaDescriptor(
        schema_id="xtk:srcSchema",
        file_type=FileType.XML,
        code_locator="@xtkschema",
    ),
    SchemaDescriptor(
        schema_id="xtk:workflow",
        file_type=FileType.XML,
        code_locator="@xtkschema",
        name_attribute="internalName",
        namespace_attribute=None,
    ),
)


class SchemaRegistry(Mapping[str, SchemaDescriptor]):
    """
    Read-only mapping of schema ids to descriptors. Build once and pass to
    whatever needs lookups.
    """

    _schemas: Mapping[str, SchemaDescriptor]

    def __init__(self, descriptors: tuple[SchemaDescriptor, ...]):
        self._schemas = MappingProxyType(
            {d.schema_id: d for d in descriptors}
        )

    @classmethod
    def default(cls) -> SchemaRegistry:
        return cls(DEFAULT_SCHEMAS)

    def lookup(self, schema_id: str) -> SchemaDescriptor:
        """
        Get descriptor for schema, raising `UnknownSchemaError` if it's not
        registered.
        """
        descriptor = self._schemas.get(schema_id)
        if descriptor is None:
            raise UnknownSchemaError(schema_id, list(self._schemas))
        return descriptor

    def __getitem__(self, schema_id: str) -> SchemaDescriptor:
        return self._schemas[schema_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)


class ExtensionRegistry(Mapping[str, FileType]):
    """
    Read-only mapping of file extensions to file types, used to pick a
    metadata codec for local files.
    """

    _types: Mapping[str, FileType]

    def __init__(self, file_types: tuple[FileType, ...] = tuple(FileType)):
        self._types = MappingProxyType(
            {t.extension: t for t in file_types}
        )

    def resolve(self, extension: str) -> FileType | None:
        """
        Get file type for extension, e.g. `.js`; case-insensitive.
        """
        return self._types.get(extension.lower())

    def __getitem__(self, extension: str) -> FileType:
        return self._types[extension]

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)
