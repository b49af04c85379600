import pytest

from api_composer.errors import UnreadableSchemaError, UnsupportedDialectError
from api_composer.models import CatalogueEntry, DataSource, OutputFieldNode
from api_composer.notify import CollectingNotifier
from api_composer.synthesis import ATOM_NAMESPACE, SchemaSynthesizer, convert, detect_dialect, synthesize


def required_map(node):
    return {c.key: c.required for c in node.children}


def test_rss_skeleton():
    root = synthesize("rss", [])
    assert root.key == "rss"
    item = root.find("channel.items.item")
    flags = required_map(item)
    assert flags["title"] is True
    assert flags["link"] is True
    assert flags["description"] is False
    assert required_map(root.child("channel"))["language"] is False
    assert root.find("channel.pubDate").format == "RFC822"


def test_atom_skeleton():
    root = synthesize("atom", [])
    assert root.key == "feed"
    assert root.namespace == ATOM_NAMESPACE
    assert required_map(root)["author"] is False
    assert [c.key for c in root.find("entries.entry").children] == ["title", "id", "updated", "summary", "link"]


def test_csv_placeholder_columns():
    root = synthesize("csv", [])
    assert root.type == "table"
    assert [(c.key, c.type) for c in root.children] == [("id", "number"), ("name", "string"), ("value", "string")]


def test_csv_columns_from_first_source():
    shop = DataSource(id="shop", name="Shop", sample_document={
        "sku": "A1",
        "price": 9.5,
        "meta": {"sku": "dup"},
        "homepage_url": "http://shop.example",
    })
    other = DataSource(id="other", name="Other", sample_document={"unrelated": 1})
    root = synthesize("csv", [shop, other])
    assert [(c.key, c.type) for c in root.children] == [("sku", "string"), ("price", "number"), ("homepage_url", "url")]


def test_xml_element_root():
    root = synthesize("xml", [])
    assert root.type == "element"
    assert [c.key for c in root.children] == ["data"]

    source = DataSource(id="s", name="S", sample_document={"title": "T"})
    assert [c.key for c in synthesize("xml", [source]).children] == ["title"]


def test_json_merges_every_source():
    a = DataSource(id="a", name="A", sample_document={"title": "T", "views": 1})
    b = DataSource(id="b", name="B", sample_document={"title": "dup", "author": "X"})
    root = synthesize("json", [a, b])
    assert root.type == "object"
    assert [c.key for c in root.children] == ["title", "views", "author"]


def test_custom_auto_schema_and_catalogues():
    calls = []

    def generator(catalogues):
        calls.append(catalogues)
        return OutputFieldNode("custom", "object")

    synthesizer = SchemaSynthesizer(auto_schema=generator)
    source = DataSource(id="s", name="S")
    entries = [CatalogueEntry("x", "number", 1, "s", "S")]
    assert synthesizer.synthesize("json", [source], catalogues={"s": entries}).key == "custom"
    assert calls == [{"s": entries}]


OPENAPI = {
    "openapi": "3.0.1",
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "status": {"type": "string", "enum": ["available", "sold"]},
                    "born": {"type": "string", "format": "date-time"},
                    "owner": {"$ref": "#/components/schemas/Owner"},
                },
            }
        }
    },
}


def test_convert_openapi3():
    root = convert(OPENAPI, CollectingNotifier())
    pet = root.child("Pet")
    assert pet.child("name").required is True
    assert pet.child("tags").required is False
    assert [c.key for c in pet.child("tags").children] == ["item"]
    assert pet.child("status").enum == ("available", "sold")
    assert pet.child("born").format == "date-time"
    owner = pet.child("owner")
    assert owner.ref == "#/components/schemas/Owner"
    assert owner.children == ()


def test_convert_swagger2_yaml():
    text = """
swagger: "2.0"
definitions:
  User:
    type: object
    properties:
      id:
        type: integer
      email:
        type: string
"""
    root = convert(text, CollectingNotifier())
    user = root.child("User")
    assert [(c.key, c.type) for c in user.children] == [("id", "integer"), ("email", "string")]


def test_convert_json_schema_text():
    text = '{"$schema": "http://json-schema.org/draft-07/schema#", "type": "object", "required": ["title"], "properties": {"title": {"type": "string"}, "score": {"type": ["number", "null"]}}}'
    root = convert(text, CollectingNotifier())
    assert root.key == "root"
    assert root.child("title").required is True
    assert root.child("score").type == "number"


def test_unknown_dialect_flattens_top_level_only():
    document = {
        "definitions": {
            "Thing": {
                "properties": {
                    "a": {"type": "number"},
                    "b": {"type": "object", "properties": {"deep": {"type": "string"}}},
                }
            }
        }
    }
    thing = convert(document, CollectingNotifier()).child("Thing")
    assert [(c.key, c.type) for c in thing.children] == [("a", "number"), ("b", "object")]
    assert thing.child("b").children == ()


def test_unreadable_documents():
    notifier = CollectingNotifier()
    for bad in ["{not json: [", "", "- a\n- b", b"\xff\xfe"]:
        with pytest.raises(UnreadableSchemaError):
            convert(bad, notifier)
    assert len(notifier.by_level("error")) == 4


def test_unsupported_dialects_are_distinct():
    notifier = CollectingNotifier()
    with pytest.raises(UnsupportedDialectError) as exc_info:
        convert({"openapi": "2.5", "paths": {}}, notifier)
    assert exc_info.value.dialect == "openapi-2.5"

    with pytest.raises(UnsupportedDialectError):
        convert({"info": {"title": "nothing to convert"}}, notifier)
    assert not isinstance(exc_info.value, UnreadableSchemaError)


def test_malformed_schema_containers_are_rejected():
    notifier = CollectingNotifier()
    shapes = [
        {"openapi": "3.0.0", "components": {"schemas": ["Pet"]}},
        {"openapi": "3.0.0", "components": "oops"},
        {"swagger": "2.0", "definitions": ["Pet"]},
        {"info": {}, "components": 7},
    ]
    for document in shapes:
        with pytest.raises(UnsupportedDialectError):
            convert(document, notifier)
    assert len(notifier.by_level("error")) == len(shapes)
    assert "components.schemas" in notifier.by_level("error")[0]


def test_successful_import_is_reported():
    notifier = CollectingNotifier()
    SchemaSynthesizer(notifier=notifier).convert(OPENAPI)
    assert notifier.by_level("info") == ["Schema imported with 1 top-level fields"]


def test_detect_dialect():
    assert detect_dialect({"openapi": "3.1.0"}) == "openapi3"
    assert detect_dialect({"swagger": "2.0"}) == "swagger2"
    assert detect_dialect({"swagger": "1.2"}) == "swagger-1.2"
    assert detect_dialect({"$schema": "x"}) == "json-schema"
    assert detect_dialect({}) == "unknown"
