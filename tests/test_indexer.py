from api_composer.accessors import get_value_by_path
from api_composer.indexer import PathIndexer, find_list_paths, index, is_internal_key

SAMPLE = {
    "id": 1,
    "title": "Hello",
    "_links": {"self": "/posts/1"},
    "$ref": "#/x",
    "__typename": "Post",
    "author": {"name": "Ann", "profile_url": "http://example.com/ann"},
    "tags": ["a", "b"],
    "orders": [{"total": 10, "sku": "A"}, {"total": 20}],
    "deleted_at": None,
}


def by_path(entries):
    return {e.path: e for e in entries}


def test_catalogue_paths_and_types():
    entries = by_path(index(SAMPLE, source_id="s1", source_name="Posts"))
    assert set(entries) == {
        "id",
        "title",
        "author",
        "author.name",
        "author.profile_url",
        "tags",
        "orders",
        "orders[*].total",
        "orders[*].sku",
        "deleted_at",
    }
    assert entries["id"].semantic_type == "number"
    assert entries["id"].sample_value == 1
    assert entries["author"].semantic_type == "object"
    assert entries["tags"].semantic_type == "array"
    assert entries["orders[*].total"].semantic_type == "number"
    assert entries["title"].source_id == "s1"
    assert entries["title"].source_name == "Posts"


def test_internal_keys_are_filtered():
    paths = {e.path for e in index(SAMPLE)}
    assert not any(p.startswith(("_", "$")) for p in paths)
    assert "__typename" not in paths
    assert is_internal_key("_id")
    assert is_internal_key("$schema")
    assert not is_internal_key("name")


def test_null_values_are_kept_as_unknown():
    entries = by_path(index(SAMPLE))
    assert entries["deleted_at"].semantic_type == "unknown"


def test_arrays_of_scalars_are_not_expanded():
    paths = {e.path for e in index(SAMPLE)}
    assert not any(p.startswith("tags[*]") for p in paths)


def test_paths_resolve_to_their_declared_category():
    docs = [
        SAMPLE,
        {"a": {"b": {"c": [1, 2]}}, "n": 1.5, "flag": False},
        {"x.y": {"z[0]": "v"}, "list": [{"inner": [{"deep": 1}]}]},
    ]
    for doc in docs:
        for entry in index(doc):
            value = get_value_by_path(doc, entry.path)
            if entry.semantic_type == "unknown":
                continue
            if entry.semantic_type == "object":
                assert isinstance(value, dict), entry.path
            elif entry.semantic_type == "array":
                assert isinstance(value, list), entry.path
            else:
                assert not isinstance(value, (dict, list)), entry.path


def test_indexing_is_idempotent():
    first = index(SAMPLE)
    second = index(SAMPLE)
    key = lambda e: e.path
    assert sorted(first, key=key) == sorted(second, key=key)


def test_max_depth_bounds_the_walk():
    doc = {"a": {"b": {"c": {"d": {"e": 1}}}}}
    paths = {e.path for e in index(doc)}
    assert "a.b.c.d" in paths
    assert "a.b.c.d.e" not in paths

    shallow = {e.path for e in PathIndexer(max_depth=2).index(doc)}
    assert shallow == {"a", "a.b"}

    override = {e.path for e in PathIndexer().index(doc, max_depth=1)}
    assert override == {"a"}


def test_root_array_indexes_first_record():
    paths = {e.path for e in index([{"id": 1, "name": "x"}, {"id": 2}])}
    assert paths == {"id", "name"}


def test_non_object_documents_give_empty_catalogue():
    assert index("not json") == []
    assert index(None) == []
    assert index([1, 2, 3]) == []


def test_find_list_paths():
    assert find_list_paths(SAMPLE) == ["orders", "tags"]
    assert find_list_paths([{"items": [1]}]) == ["(root)", "items"]

