"""
Codecs which embed a record's identity (schema, name and label) in the text
of its file, and extract it again when the file is uploaded.

Each file type stores the identity differently:

- `.html`: comment block preceding the code
    ```
    <!--
    !Schema: xtk:jst
    !Name: cus:folder_page
    !Label: My page
    -->
    ```
- `.js`: line comments preceding the code, e.g. `// !Schema: xtk:javascript`
- `.xml`: attributes of the document's root element, which the record
already carries natively
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod

from lxml import etree
from pydantic import ValidationError

from .names import InternalName
from .schema import FileType, SchemaDescriptor, SchemaRegistry
from .template import Template

__all__ = [
    "MetadataCodec",
    "HtmlMetadataCodec",
    "JavaScriptMetadataCodec",
    "XmlMetadataCodec",
    "get_codec",
    "parse_xml",
    "strip_query_namespace",
]

SCHEMA_KEY = "Schema"
NAME_KEY = "Name"
LABEL_KEY = "Label"

SCHEMA_ATTRIBUTE = "xtkschema"
LABEL_ATTRIBUTE = "label"

QUERY_NAMESPACE = "urn:xtk:queryDef"
"""
Default namespace the backend declares on rows returned by a query. It's not
part of the record itself and must not be written to disk.
"""


class MetadataCodec(ABC):
    """
    Extracts/inserts identity metadata from/into the text of a file.
    """

    registry: SchemaRegistry

    def __init__(self, registry: SchemaRegistry | None = None):
        self.registry = (
            registry if registry is not None else SchemaRegistry.default()
        )

    @abstractmethod
    def extract_metadata(self, text: str) -> Template:
        """
        Get template from file text. If the text has no metadata, the
        template's name is `None` and its code is the whole text.
        """
        ...

    @abstractmethod
    def insert_metadata(self, template: Template) -> str:
        """
        Get file text for template.
        """
        ...


class _HeaderMetadataCodec(MetadataCodec):
    """
    Common functionality of codecs which place a header of `!Key: value`
    lines before the code.
    """

    line_pattern: re.Pattern[str]
    line_format: str

    def _format_header(self, template: Template) -> list[str]:
        fields: list[tuple[str, str]] = [
            (SCHEMA_KEY, template.schema_id or ""),
            (NAME_KEY, str(template.name) if template.name else ""),
        ]
        if template.label is not None:
            fields.append((LABEL_KEY, template.label))

        return [
            self.line_format.format(key=key, value=value) + "\n"
            for key, value in fields
        ]

    def _parse_line(self, line: str) -> tuple[str, str] | None:
        match = self.line_pattern.match(line.rstrip("\r\n"))
        if match is None:
            return None
        return match["key"].lower(), match["value"]

    def _build_template(self, fields: dict[str, str], code: str) -> Template:
        name = fields.get(NAME_KEY.lower())

        try:
            internal_name = InternalName.parse(name) if name else None
        except ValidationError:
            # e.g. namespace without a local name
            internal_name = None

        return Template(
            schema_id=fields.get(SCHEMA_KEY.lower()) or None,
            name=internal_name,
            label=fields.get(LABEL_KEY.lower()),
            code=code,
        )


class HtmlMetadataCodec(_HeaderMetadataCodec):
    """
    Metadata in a `<!-- ... -->` block at the top of the file.
    """

    BLOCK_START = "<!--"
    BLOCK_END = "-->"

    line_pattern = re.compile(r"^!(?P<key>\w+):\s?(?P<value>.*)$")
    line_format = "!{key}: {value}"

    def extract_metadata(self, text: str) -> Template:
        lines = text.splitlines(keepends=True)

        if not lines or lines[0].strip() != self.BLOCK_START:
            return Template(code=text)

        fields: dict[str, str] = {}

        for index, line in enumerate(lines[1:], start=1):
            if line.strip() == self.BLOCK_END:
                break

            if field := self._parse_line(line):
                key, value = field
                fields[key] = value
        else:
            # comment never closed
            return Template(code=text)

        # a leading comment without any fields is part of the code
        if not fields:
            return Template(code=text)

        return self._build_template(fields, "".join(lines[index + 1 :]))

    def insert_metadata(self, template: Template) -> str:
        header = self._format_header(template)
        return "".join(
            [f"{self.BLOCK_START}\n", *header, f"{self.BLOCK_END}\n"]
        ) + template.code


class JavaScriptMetadataCodec(_HeaderMetadataCodec):
    """
    Metadata in `// !Key: value` lines at the top of the file.
    """

    line_pattern = re.compile(r"^//\s?!(?P<key>\w+):\s?(?P<value>.*)$")
    line_format = "// !{key}: {value}"

    def extract_metadata(self, text: str) -> Template:
        lines = text.splitlines(keepends=True)
        fields: dict[str, str] = {}
        header_size = 0

        for line in lines:
            field = self._parse_line(line)
            if field is None:
                break

            key, value = field
            fields[key] = value
            header_size += 1

        if not fields:
            return Template(code=text)

        return self._build_template(fields, "".join(lines[header_size:]))

    def insert_metadata(self, template: Template) -> str:
        return "".join(self._format_header(template)) + template.code


class XmlMetadataCodec(MetadataCodec):
    """
    Metadata in attributes of the root element. The schema is given by
    `xtkschema`, which then determines the attributes holding the name.
    """

    def extract_metadata(self, text: str) -> Template:
        try:
            root = parse_xml(text)
        except etree.XMLSyntaxError:
            return Template(code=text)

        schema_id = root.get(SCHEMA_ATTRIBUTE) or None
        name_attribute, namespace_attribute = self._name_attributes(schema_id)

        name = root.get(name_attribute)
        namespace = (
            root.get(namespace_attribute) if namespace_attribute else None
        )

        return Template(
            schema_id=schema_id,
            name=(
                InternalName(namespace=namespace or None, name=name)
                if name
                else None
            ),
            label=root.get(LABEL_ATTRIBUTE),
            code=(
                etree.tostring(strip_query_namespace(root), encoding="unicode")
                if _has_query_namespace(root)
                else text
            ),
        )

    def insert_metadata(self, template: Template) -> str:
        descriptor = self._descriptor(template.schema_id)

        if template.code.strip():
            root = parse_xml(template.code)
        else:
            tag = descriptor.local_name if descriptor else "root"
            root = etree.Element(tag)

        if template.schema_id:
            root.set(SCHEMA_ATTRIBUTE, template.schema_id)

        if template.name:
            name_attribute, namespace_attribute = self._name_attributes(
                template.schema_id
            )
            if namespace_attribute and template.name.namespace:
                root.set(namespace_attribute, template.name.namespace)
            root.set(name_attribute, template.name.name)

        if template.label is not None:
            root.set(LABEL_ATTRIBUTE, template.label)

        return etree.tostring(root, encoding="unicode")

    def _descriptor(self, schema_id: str | None) -> SchemaDescriptor | None:
        return self.registry.get(schema_id) if schema_id else None

    def _name_attributes(self, schema_id: str | None) -> tuple[str, str | None]:
        descriptor = self._descriptor(schema_id)
        if descriptor is None:
            return "name", "namespace"
        return descriptor.name_attribute, descriptor.namespace_attribute


_CODECS: dict[FileType, type[MetadataCodec]] = {
    FileType.HTML: HtmlMetadataCodec,
    FileType.JAVASCRIPT: JavaScriptMetadataCodec,
    FileType.XML: XmlMetadataCodec,
}


def get_codec(
    file_type: FileType, registry: SchemaRegistry | None = None
) -> MetadataCodec:
    """
    Get codec for file type.
    """
    return _CODECS[file_type](registry)


def parse_xml(text: str) -> etree._Element:
    """
    Parse xml document from text. An encoding declaration in the text is
    ignored since the text is already decoded.
    """
    parser = etree.XMLParser(
        encoding="utf-8", remove_blank_text=False, resolve_entities=False
    )
    return etree.fromstring(text.encode("utf-8"), parser)


def strip_query_namespace(element: etree._Element) -> etree._Element:
    """
    Move elements out of the query result namespace, in place, and drop its
    declaration.
    """
    for node in element.iter():
        if not isinstance(node.tag, str):
            # comment or processing instruction
            continue

        qname = etree.QName(node)
        if qname.namespace == QUERY_NAMESPACE:
            node.tag = qname.localname

    etree.cleanup_namespaces(element)
    return element


def _has_query_namespace(element: etree._Element) -> bool:
    return any(
        QUERY_NAMESPACE in node.nsmap.values()
        for node in element.iter()
        if isinstance(node.tag, str)
    )
