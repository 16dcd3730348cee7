"""
Construction of the element sent to the backend to create or update a record.
"""
from __future__ import annotations

import copy

from lxml import etree

from .exceptions import PayloadError
from .metadata import LABEL_ATTRIBUTE, SCHEMA_ATTRIBUTE, parse_xml
from .schema import SchemaDescriptor
from .template import Template

__all__ = [
    "KEY_ATTRIBUTE",
    "build_persist_element",
    "merge_fragment",
]

KEY_ATTRIBUTE = "_key"
"""
Attribute telling the backend which attributes identify an existing record.
"""


def build_persist_element(
    template: Template, descriptor: SchemaDescriptor
) -> etree._Element:
    """
    Build a new, self-contained element for writing this template.

    For xml-bodied schemas the code is merged into the element; otherwise
    it's carried as the text of the element given by the schema's code
    locator.
    """
    assert template.name is not None

    element = etree.Element(descriptor.local_name)
    element.set(SCHEMA_ATTRIBUTE, descriptor.schema_id)
    element.set(KEY_ATTRIBUTE, descriptor.persist_key)

    if descriptor.namespace_attribute and template.name.namespace:
        element.set(descriptor.namespace_attribute, template.name.namespace)
    element.set(descriptor.name_attribute, template.name.name)

    if template.label is not None:
        element.set(LABEL_ATTRIBUTE, template.label)

    if descriptor.is_xml:
        merge_fragment(element, template.code)
    elif descriptor.is_attribute_locator:
        element.set(descriptor.attribute_name, template.code)
    else:
        _set_text(element, descriptor.element_path, template.code)

    return element


def merge_fragment(element: etree._Element, fragment: str) -> etree._Element:
    """
    Copy the attributes and children of the fragment's root onto `element`.
    Fragment attributes override existing ones; children are deep copies,
    appended in document order.
    """
    try:
        source = parse_xml(fragment)
    except etree.XMLSyntaxError as e:
        raise PayloadError(f"Code is not well-formed xml: {e}") from e

    for name, value in source.attrib.items():
        element.set(name, value)

    if source.text and source.text.strip():
        element.text = (element.text or "") + source.text

    for child in source:
        element.append(copy.deepcopy(child))

    return element


def _set_text(element: etree._Element, path: list[str], text: str):
    """
    Set text of the element at the given path, creating it as needed.
    """
    node = element
    for step in path:
        child = node.find(step)
        node = child if child is not None else etree.SubElement(node, step)
    node.text = text
