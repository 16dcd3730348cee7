"""
Test downloading records to files.
"""

import logging
from pathlib import Path

from lxml import etree
from pytest import LogCaptureFixture, mark, raises

from campaign_sync import (
    HtmlMetadataCodec,
    InternalName,
    JavaScriptMetadataCodec,
    QueryError,
    SchemaRegistry,
    UnknownSchemaError,
    XmlMetadataCodec,
)
from campaign_sync.tools.download import download, locate_code, reconstruct

JST_ROW = (
    '<jst xmlns="urn:xtk:queryDef" namespace="cus" name="folder_page"'
    ' label="Page"><code>&lt;p&gt;Hi&lt;/p&gt;</code></jst>'
)
JST_ROW_2 = (
    '<jst xmlns="urn:xtk:queryDef" namespace="cus" name="footer"'
    ' label="Footer"><code>&lt;footer/&gt;</code></jst>'
)
JS_ROW = (
    '<javascript xmlns="urn:xtk:queryDef" namespace="cus" name="lib.js"'
    ' label="Library"><data>var a = 1;</data></javascript>'
)
SRC_SCHEMA_ROW = (
    '<srcSchema xmlns="urn:xtk:queryDef" namespace="cus" name="recipient"'
    ' label="Recipients" xtkschema="xtk:srcSchema">'
    '<element name="recipient"><attribute name="email"/></element>'
    "</srcSchema>"
)
INCLUDE_VIEW_ROW = (
    '<includeView xmlns="urn:xtk:queryDef" name="header" label="Header"/>'
)


@mark.rows(JST_ROW, JST_ROW_2)
def test_download(backend, registry: SchemaRegistry, tmp_path: Path):
    stats = download(
        backend,
        registry,
        "xtk:jst",
        tmp_path,
        conditions=["@namespace = 'cus'"],
    )

    assert backend.queries == [
        (
            "xtk:jst",
            ["@namespace", "@name", "@label", "code"],
            ["@namespace = 'cus'"],
        )
    ]

    page_path = tmp_path / "cus" / "folder" / "page.html"
    assert stats.file_count == 2
    assert stats.paths == [page_path, tmp_path / "cus" / "footer.html"]

    assert page_path.read_text() == (
        "<!--\n"
        "!Schema: xtk:jst\n"
        "!Name: cus:folder_page\n"
        "!Label: Page\n"
        "-->\n"
        "<p>Hi</p>"
    )


@mark.rows(JST_ROW)
def test_download_schema_subdirectory(
    backend, registry: SchemaRegistry, tmp_path: Path
):
    stats = download(
        backend, registry, "xtk:jst", tmp_path, schema_subdirectory=True
    )

    assert stats.paths == [tmp_path / "xtk_jst" / "cus" / "folder" / "page.html"]
    assert stats.paths[0].is_file()


@mark.rows(JST_ROW)
def test_download_overwrite(backend, registry: SchemaRegistry, tmp_path: Path):
    path = tmp_path / "cus" / "folder" / "page.html"
    path.parent.mkdir(parents=True)
    path.write_text("stale")

    download(backend, registry, "xtk:jst", tmp_path)

    template = HtmlMetadataCodec().extract_metadata(path.read_text())
    assert template.code == "<p>Hi</p>"


@mark.rows(JS_ROW)
def test_download_javascript(backend, registry: SchemaRegistry, tmp_path: Path):
    stats = download(backend, registry, "xtk:javascript", tmp_path)

    # name already carries extension
    path = tmp_path / "cus" / "lib.js"
    assert stats.paths == [path]

    template = JavaScriptMetadataCodec().extract_metadata(path.read_text())
    assert template.schema_id == "xtk:javascript"
    assert template.name == InternalName(namespace="cus", name="lib.js")
    assert template.label == "Library"
    assert template.code == "var a = 1;"


@mark.rows(SRC_SCHEMA_ROW)
def test_download_xml(backend, registry: SchemaRegistry, tmp_path: Path):
    stats = download(backend, registry, "xtk:srcSchema", tmp_path)

    path = tmp_path / "cus" / "recipient.xml"
    assert stats.paths == [path]

    text = path.read_text()
    assert "urn:xtk:queryDef" not in text

    root = etree.fromstring(text)
    assert root.tag == "srcSchema"
    assert root[0].get("name") == "recipient"

    template = XmlMetadataCodec(registry).extract_metadata(text)
    assert template.schema_id == "xtk:srcSchema"
    assert template.name == InternalName(namespace="cus", name="recipient")
    assert template.label == "Recipients"


@mark.rows(INCLUDE_VIEW_ROW)
def test_download_missing_code(
    backend, registry: SchemaRegistry, tmp_path: Path
):
    """
    Missing element along the code path results in empty code.
    """
    stats = download(backend, registry, "nms:includeView", tmp_path)

    path = tmp_path / "header.html"
    assert stats.paths == [path]

    template = HtmlMetadataCodec().extract_metadata(path.read_text())
    assert template.name == InternalName(name="header")
    assert template.code == ""


def test_download_unknown_schema(
    backend, registry: SchemaRegistry, tmp_path: Path
):
    with raises(UnknownSchemaError):
        download(backend, registry, "xtk:unknown", tmp_path)

    assert backend.queries == []


def test_download_query_error(
    make_backend, registry: SchemaRegistry, tmp_path: Path
):
    backend = make_backend([JST_ROW], query_error=QueryError("denied"))

    with raises(QueryError):
        download(backend, registry, "xtk:jst", tmp_path)

    assert list(tmp_path.iterdir()) == []


def test_reconstruct(registry: SchemaRegistry):
    template = reconstruct(JST_ROW, registry.lookup("xtk:jst"))

    assert template.schema_id == "xtk:jst"
    assert template.name == InternalName(namespace="cus", name="folder_page")
    assert template.label == "Page"
    assert template.code == "<p>Hi</p>"


def test_locate_code_nested(registry: SchemaRegistry):
    descriptor = registry.lookup("nms:includeView")

    root = etree.fromstring(
        '<includeView xmlns="urn:xtk:queryDef" name="v">'
        "<source><text>Hello</text></source></includeView>"
    )
    assert locate_code(root, descriptor) == "Hello"

    # path stops early
    root = etree.fromstring(
        '<includeView xmlns="urn:xtk:queryDef" name="v"><source/></includeView>'
    )
    assert locate_code(root, descriptor) == ""


@mark.rows(
    '<jst xmlns="urn:xtk:queryDef" namespace=".." name="escaped"><code/></jst>',
    '<jst xmlns="urn:xtk:queryDef" namespace="cus" name="a_.._.._b"><code/></jst>',
    '<jst xmlns="urn:xtk:queryDef" namespace="/tmp" name="abs"><code/></jst>',
    JST_ROW,
)
def test_download_outside_output_dir(
    backend,
    registry: SchemaRegistry,
    tmp_path: Path,
    caplog: LogCaptureFixture,
):
    """
    Records whose name would place them outside the output folder are
    skipped.
    """
    out_dir = tmp_path / "out"

    with caplog.at_level(logging.WARNING):
        stats = download(backend, registry, "xtk:jst", out_dir)

    assert stats.paths == [out_dir / "cus" / "folder" / "page.html"]
    assert not (tmp_path / "escaped.html").exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out"]

    warnings = [r.getMessage() for r in caplog.records]
    assert len(warnings) == 3
    assert all(w.startswith("Skipping") for w in warnings)


@mark.rows('<jst xmlns="urn:xtk:queryDef" namespace="cus"><code/></jst>', JST_ROW)
def test_download_unnamed_record(
    backend, registry: SchemaRegistry, tmp_path: Path
):
    stats = download(backend, registry, "xtk:jst", tmp_path)

    assert stats.paths == [tmp_path / "cus" / "folder" / "page.html"]
