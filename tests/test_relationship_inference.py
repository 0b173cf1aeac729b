"""Tests for relationship inference."""

from sanity2strapi.models.relationship import RelationKind, pair_key
from sanity2strapi.models.schema import ArrayItem, EntityTypeDeclaration, FieldDeclaration
from sanity2strapi.services.relationship_inference import RelationshipInferencer


def single_ref(name, target):
    return FieldDeclaration(name=name, type="reference", to=target)


def array_ref(name, target):
    return FieldDeclaration(
        name=name,
        type="array",
        of=[ArrayItem(type="reference", reference_targets=[target])],
    )


def document(name, *fields):
    return EntityTypeDeclaration(name=name, fields=list(fields))


def infer(*documents):
    return RelationshipInferencer({d.name: d for d in documents}).infer()


class TestPairKey:
    def test_symmetric(self):
        assert pair_key("post", "author") == pair_key("author", "post") == "author-post"


class TestClassification:
    """Test the cardinality table."""

    def test_no_references_means_no_records(self):
        result = infer(document("post", FieldDeclaration(name="title", type="string")))
        assert result.records == {}
        assert result.ends == {}

    def test_many_to_many_when_both_sides_are_arrays(self):
        result = infer(
            document("post", array_ref("tags", "tag")),
            document("tag", array_ref("posts", "post")),
        )

        record = result.records["post-tag"]
        assert record.cardinality == RelationKind.MANY_TO_MANY

        post_end = result.end_for("post", "tags")
        tag_end = result.end_for("tag", "posts")
        assert post_end.relation == RelationKind.MANY_TO_MANY
        assert post_end.mapped_by == "posts"
        assert tag_end.relation == RelationKind.MANY_TO_MANY
        assert tag_end.inversed_by == "tags"

    def test_one_to_many_assigns_single_side_as_owner(self):
        result = infer(
            document("post", single_ref("author", "person")),
            document("person", array_ref("posts", "post")),
        )

        assert result.records["person-post"].cardinality == RelationKind.ONE_TO_MANY

        single_end = result.end_for("post", "author")
        array_end = result.end_for("person", "posts")
        assert single_end.relation == RelationKind.ONE_TO_MANY
        assert single_end.mapped_by == "posts"
        assert single_end.target_type == "person"
        assert array_end.relation == RelationKind.MANY_TO_ONE
        assert array_end.inversed_by == "author"

    def test_bidirectional_one_to_one(self):
        result = infer(
            document("person", single_ref("profile", "profile")),
            document("profile", single_ref("owner", "person")),
        )

        assert result.records["person-profile"].cardinality == RelationKind.ONE_TO_ONE
        assert result.end_for("person", "profile").mapped_by == "owner"
        assert result.end_for("profile", "owner").inversed_by == "profile"

    def test_unidirectional_array_is_one_to_many(self):
        result = infer(
            document("post", array_ref("categories", "category")),
            document("category", FieldDeclaration(name="title", type="string")),
        )

        end = result.end_for("post", "categories")
        assert end.relation == RelationKind.ONE_TO_MANY
        assert end.mapped_by is None
        assert end.inversed_by is None

    def test_unidirectional_single_is_one_to_one(self):
        result = infer(
            document("post", single_ref("author", "person")),
            document("person"),
        )
        assert result.end_for("post", "author").relation == RelationKind.ONE_TO_ONE


class TestAmbiguity:
    """Test references that cannot be classified."""

    def test_target_that_is_not_a_document(self):
        result = infer(document("post", single_ref("seo", "seoSettings")))

        assert result.records == {}
        assert result.ambiguities[0]["field"] == "seo"
        assert result.ambiguities[0]["type"] == "inference_ambiguity"

    def test_reference_without_target(self):
        result = infer(document("post", FieldDeclaration(name="link", type="reference")))
        assert result.end_for("post", "link") is None
        assert len(result.ambiguities) == 1

    def test_later_edge_in_same_direction_replaces_earlier(self):
        result = infer(
            document("post", single_ref("author", "person"), single_ref("editor", "person")),
            document("person"),
        )

        assert result.end_for("post", "editor") is not None
        assert result.end_for("post", "author") is None
        assert result.ambiguities[0]["field"] == "author"
