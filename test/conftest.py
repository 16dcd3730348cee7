import logging
from pathlib import Path
from typing import Iterable

from lxml import etree
from pytest import FixtureRequest, fixture

from campaign_sync import (
    InternalName,
    PersistResult,
    SchemaRegistry,
    Template,
    get_codec,
)

logging.basicConfig(level=logging.WARNING)

MARKERS = [
    "rows",
    "fail_names",
]


def pytest_configure(config) -> None:
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)


class FakeBackend:
    """
    In-memory stand-in for a logged-on session. Records every query and
    write; writes of records named in `fail_names` are rejected.
    """

    host = "https://campaign.example.com"

    rows: list[str]
    fail_names: set[str]
    query_error: Exception | None
    queries: list[tuple[str, list[str], list[str]]]
    writes: list[etree._Element]

    def __init__(
        self,
        rows: Iterable[str] = (),
        *,
        fail_names: Iterable[str] = (),
        query_error: Exception | None = None,
    ):
        self.rows = list(rows)
        self.fail_names = set(fail_names)
        self.query_error = query_error
        self.queries = []
        self.writes = []

    def query(
        self, schema_id: str, fields: list[str], conditions: Iterable[str] = ()
    ) -> list[str]:
        self.queries.append((schema_id, list(fields), list(conditions)))
        if self.query_error is not None:
            raise self.query_error
        return list(self.rows)

    def write(self, element: etree._Element) -> PersistResult:
        self.writes.append(element)

        name = element.get("name") or element.get("internalName")
        if name in self.fail_names:
            return PersistResult(success=False, message=f"rejected {name}")

        return PersistResult(success=True)

    @property
    def written_names(self) -> list[str | None]:
        return [
            e.get("name") or e.get("internalName") for e in self.writes
        ]


@fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry.default()


@fixture
def backend(request: FixtureRequest) -> FakeBackend:
    """
    Fake backend, optionally configured by `rows` and `fail_names` markers.
    """
    rows_marker = request.node.get_closest_marker("rows")
    fail_marker = request.node.get_closest_marker("fail_names")

    return FakeBackend(
        rows_marker.args if rows_marker else (),
        fail_names=fail_marker.args if fail_marker else (),
    )


@fixture
def write_template(registry: SchemaRegistry):
    """
    Get a function which writes a template file with embedded metadata.
    """

    def write(
        path: Path,
        schema_id: str,
        name: str,
        code: str,
        label: str | None = None,
    ) -> Path:
        descriptor = registry.lookup(schema_id)
        codec = get_codec(descriptor.file_type, registry)
        template = Template(
            schema_id=schema_id,
            name=InternalName.parse(name),
            label=label,
            code=code,
        )

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(codec.insert_metadata(template))
        return path

    return write


@fixture
def make_backend() -> type[FakeBackend]:
    """
    Get fake backend class, for tests which configure it directly.
    """
    return FakeBackend
