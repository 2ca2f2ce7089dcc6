"""Tests for entity descriptors, the builder and the registry."""

from __future__ import annotations

import pytest

from ormsync.core.errors import DescriptorError
from ormsync.schema.descriptors import (
    Column,
    EntityBuilder,
    EntityDescriptor,
    EntityRegistry,
    FieldType,
    Identity,
    ManyToOneRef,
    snake_case,
    validate_descriptor,
)


class TestSnakeCase:
    @pytest.mark.parametrize(
        "name, expected",
        [("User", "user"), ("BlogPost", "blog_post"), ("team", "team")],
    )
    def test_snake_case(self, name, expected):
        assert snake_case(name) == expected


class TestBuilder:
    def test_defaults_table_name(self):
        entity = EntityBuilder("BlogPost").identity().build()
        assert entity.table_name == "blog_post"
        assert entity.identity == Identity()

    def test_columns_in_declaration_order(self):
        entity = (
            EntityBuilder("User", table="users")
            .identity()
            .column("username", length=20, nullable=False, unique=True)
            .many_to_one("team_id", "Team")
            .one_to_many("Post", mapped_by="author_id")
            .timestamps()
            .build()
        )
        assert entity.column_names() == ["id", "username", "team_id", "created_at", "updated_at"]
        assert entity.columns[-1] == Column("updated_at", FieldType.DATETIME)
        assert entity.many_to_one == [ManyToOneRef("team_id", "Team")]
        assert len(entity.one_to_many) == 1

    def test_descriptor_is_frozen(self):
        entity = EntityBuilder("User").identity().build()
        with pytest.raises(AttributeError):
            entity.table_name = "other"  # type: ignore[misc]


class TestValidation:
    def test_requires_identity(self):
        with pytest.raises(DescriptorError, match="exactly one identity"):
            EntityBuilder("User").column("name").build()

    def test_rejects_two_identities(self):
        with pytest.raises(DescriptorError):
            EntityBuilder("User").identity().identity("other_id").build()

    def test_many_to_one_needs_join_column(self):
        with pytest.raises(DescriptorError, match="no join column"):
            EntityBuilder("User").identity().many_to_one("", "Team").build()

    def test_one_to_many_needs_mapped_by(self):
        with pytest.raises(DescriptorError, match="mapped_by"):
            EntityBuilder("Team").identity().one_to_many("User", mapped_by="").build()

    @pytest.mark.parametrize("bad", ["users; DROP TABLE x", "1users", "user name", ""])
    def test_rejects_unsafe_column_names(self, bad):
        with pytest.raises(DescriptorError):
            EntityBuilder("User").identity().column(bad).build()

    def test_rejects_unsafe_table_name(self):
        with pytest.raises(DescriptorError, match="table name"):
            EntityBuilder("User", table="users--").identity().build()

    def test_validate_descriptor_built_by_hand(self):
        descriptor = EntityDescriptor("User", "users", (Identity(), ManyToOneRef("team_id", "Team")))
        validate_descriptor(descriptor)
        with pytest.raises(DescriptorError):
            validate_descriptor(EntityDescriptor("User", "users", (Column("name"),)))

    def test_duplicate_columns_case_insensitive(self):
        with pytest.raises(DescriptorError, match="duplicate column"):
            EntityBuilder("User").identity().column("Email").column("email").build()

    def test_non_positive_length(self):
        with pytest.raises(DescriptorError, match="length"):
            EntityBuilder("User").identity().column("name", length=0).build()

    def test_scale_greater_than_precision(self):
        with pytest.raises(DescriptorError, match="scale"):
            EntityBuilder("Order").identity().column("total", FieldType.DECIMAL, precision=4, scale=6).build()

    def test_error_names_entity(self):
        with pytest.raises(DescriptorError) as exc_info:
            EntityBuilder("Invoice").column("total").build()
        assert exc_info.value.entity == "Invoice"


class TestRegistry:
    def test_register_accepts_builder(self, order_entity):
        registry = EntityRegistry()
        descriptor = registry.register(order_entity)
        assert registry["Order"] is descriptor
        assert "Order" in registry
        assert len(registry) == 1
        assert list(registry) == [descriptor]

    def test_rejects_duplicate_name(self, registry):
        with pytest.raises(DescriptorError, match="already registered"):
            registry.register(EntityBuilder("User", table="people").identity())

    def test_rejects_duplicate_table(self, registry):
        with pytest.raises(DescriptorError, match="already mapped"):
            registry.register(EntityBuilder("Person", table="USERS").identity())

    def test_table_and_key_lookup(self, registry):
        assert registry.table_for("Team") == "teams"
        assert registry.table_for("Unregistered") == "unregistered"
        assert registry.key_for("Team") == "id"
        assert registry.get("Nope") is None

    def test_join_table_defaults(self, registry):
        user = registry["User"]
        join = registry.join_table(user, user.many_to_many[0])
        assert join.name == "users_roles"
        assert (join.owner_table, join.owner_column, join.owner_key) == ("users", "user_id", "id")
        assert (join.target_table, join.target_column, join.target_key) == ("roles", "role_id", "id")
        assert join.target_registered is True

    def test_join_table_explicit_names(self):
        registry = EntityRegistry()
        student = registry.register(
            EntityBuilder("Student", table="students")
            .identity()
            .many_to_many("Course", join_table="enrollments", join_column="sid", inverse_join_column="cid")
        )
        join = registry.join_table(student, student.many_to_many[0])
        assert (join.name, join.owner_column, join.target_column) == ("enrollments", "sid", "cid")
        assert join.target_registered is False

    def test_self_referencing_join_columns_disambiguated(self):
        registry = EntityRegistry()
        person = registry.register(EntityBuilder("Person", table="people").identity().many_to_many("Person"))
        join = registry.join_table(person, person.many_to_many[0])
        assert join.owner_column == "person_id"
        assert join.target_column == "person_id_inverse"
