"""
This module implements the schema-driven serialization of records: schema
rules, internal names, metadata codecs and write payloads, along with the
session used to reach the backend.
"""

from pyrollup import rollup

from . import (
    exceptions,
    metadata,
    names,
    payload,
    schema,
    session,
    template,
    transform,
)
from .exceptions import *  # noqa
from .metadata import *  # noqa
from .names import *  # noqa
from .payload import *  # noqa
from .schema import *  # noqa
from .session import *  # noqa
from .template import *  # noqa
from .transform import *  # noqa

__all__ = rollup(
    schema,
    names,
    template,
    metadata,
    transform,
    payload,
    session,
    exceptions,
)

__canonical_children__ = [
    "schema",
    "names",
    "template",
    "metadata",
    "transform",
    "payload",
    "session",
    "exceptions",
]
