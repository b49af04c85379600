import pytest

from api_composer.errors import ConfigurationError
from api_composer.models import JoinedRecord, Relationship
from api_composer.relationships import RelationshipResolver, build_child_index, join, join_key

PARENTS = [{"id": 1}, {"id": 2}]
CHILDREN = [{"pid": 1, "v": "a"}, {"pid": 1, "v": "b"}]


def relationship(**overrides):
    fields = dict(
        id="rel_1",
        parent_source_id="parents",
        parent_key="id",
        child_source_id="children",
        foreign_key="pid",
        cardinality="one-to-many",
        embed_as="children",
        include_orphans=False,
    )
    fields.update(overrides)
    return Relationship(**fields)


def test_one_to_many_drops_orphans():
    joined = join(PARENTS, CHILDREN, relationship())
    assert len(joined) == 1
    assert joined[0].record["id"] == 1
    assert [c["v"] for c in joined[0].record["children"]] == ["a", "b"]
    assert joined[0].origin == "parents"


def test_orphans_kept_with_empty_list():
    joined = join(PARENTS, CHILDREN, relationship(include_orphans=True))
    assert len(joined) == 2
    assert joined[1].record == {"id": 2, "children": []}


def test_one_to_one_embeds_first_match():
    joined = join(PARENTS, CHILDREN, relationship(cardinality="one-to-one", include_orphans=True))
    assert joined[0].record["children"] == {"pid": 1, "v": "a"}
    assert joined[1].record["children"] is None


def test_many_to_many_matches_one_to_many():
    one_to_many = join(PARENTS, CHILDREN, relationship())
    many_to_many = join(PARENTS, CHILDREN, relationship(cardinality="many-to-many"))
    assert [j.record for j in many_to_many] == [j.record for j in one_to_many]


def test_children_shared_by_parents_are_duplicated():
    parents = [{"tag": "x", "n": 1}, {"tag": "x", "n": 2}]
    children = [{"tag": "x", "label": "X"}]
    joined = join(parents, children, relationship(parent_key="tag", foreign_key="tag", cardinality="many-to-many"))
    assert [len(j.record["children"]) for j in joined] == [1, 1]
    joined[0].record["children"][0]["label"] = "changed"
    assert joined[1].record["children"][0]["label"] == "X"


def test_parent_records_are_not_mutated():
    parents = [{"id": 1}]
    join(parents, CHILDREN, relationship())
    assert parents == [{"id": 1}]


def test_key_types_are_normalized():
    assert join_key({"id": 42}, "id") == join_key({"id": "42"}, "id")
    assert join_key({"id": 42.0}, "id") == join_key({"id": " 42 "}, "id")
    joined = join([{"id": "7"}], [{"pid": 7, "v": "x"}], relationship())
    assert len(joined) == 1


def test_missing_keys_never_match():
    parents = [{"id": None}, {"name": "no key"}]
    children = [{"pid": None, "v": "a"}, {"v": "b"}]
    assert join(parents, children, relationship()) == []
    assert build_child_index(children, "pid") == {}


def test_nested_keys_and_embed_path():
    parents = [{"user": {"id": 1}}]
    children = [{"author": {"id": 1}, "title": "T"}]
    rel = relationship(parent_key="user.id", foreign_key="author.id", embed_as="user.posts")
    joined = join(parents, children, rel)
    assert joined[0].record["user"]["posts"][0]["title"] == "T"


def test_unknown_cardinality_rejected():
    with pytest.raises(ConfigurationError):
        relationship(cardinality="several")


def test_empty_embed_field_rejected():
    for embed_as in ("", "."):
        with pytest.raises(ConfigurationError):
            relationship(embed_as=embed_as)


def test_resolver_tags_origin_and_consumes_children():
    records = {
        "users": [{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bob"}],
        "posts": [{"user_id": 1, "title": "P1"}, {"user_id": 1, "title": "P2"}],
        "news": [{"headline": "N"}],
    }
    rel = relationship(
        parent_source_id="users", parent_key="id",
        child_source_id="posts", foreign_key="user_id",
        embed_as="posts", include_orphans=True,
    )
    joined = RelationshipResolver([rel]).resolve(records)
    origins = [j.origin for j in joined]
    assert origins == ["users", "users", "news"]
    assert len(joined[0].record["posts"]) == 2
    assert joined[1].record["posts"] == []


def test_resolver_without_relationships_tags_every_record():
    joined = RelationshipResolver().resolve({"a": [{"x": 1}], "b": [{"y": 2}, "not a record"]})
    assert joined == [JoinedRecord({"x": 1}, "a"), JoinedRecord({"y": 2}, "b")]


def test_nested_embed_does_not_touch_input():
    parents = [{"user": {"id": 1}}]
    join(parents, [{"author": {"id": 1}}], relationship(parent_key="user.id", foreign_key="author.id", embed_as="user.posts"))
    assert parents == [{"user": {"id": 1}}]
