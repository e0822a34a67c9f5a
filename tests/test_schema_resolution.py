import pytest

from infinidb import (
    ColumnType,
    DuplicateColumn,
    GeneratorError,
    InvalidType,
    SchemaError,
    SchemaGenerationError,
)
from infinidb.utils import Configuration
from infinidb.table import TableRegistry

from conftest import USERS_SCHEMA, FakeGenerator


def test_resolve_twice_calls_generator_once(registry, generator):
    first = registry.resolve_columns("users", "newsletter subscribers")
    second = registry.resolve_columns("users", "newsletter subscribers")

    assert generator.schema_calls == 1
    assert first == second
    assert [c.name for c in first] == ["id", "name", "age", "score", "avatar"]
    assert first[0].type is ColumnType.INTEGER
    assert first[0].constraints == "PRIMARY KEY"


def test_cache_key_ignores_description(registry, generator):
    first = registry.resolve_columns("users", "newsletter subscribers")
    second = registry.resolve_columns("users", "something else entirely")

    assert generator.schema_calls == 1
    assert second == first


def test_prompt_encodes_name_and_description(registry, generator):
    registry.resolve_columns("users", "newsletter subscribers")
    _, prompt, shape = generator.calls[0]
    assert "users" in prompt
    assert "newsletter subscribers" in prompt
    assert shape["title"] == "table_schema"


def test_connect_returns_resolved_handle(registry):
    handle = registry.connect("users", "newsletter subscribers")
    assert handle.name == "users"
    assert handle.description == "newsletter subscribers"
    assert len(handle.columns) == 5
    assert handle.best_index([object(), object()], []) == [False, False]


def test_invalid_schema_is_not_cached(config):
    generator = FakeGenerator(schema={"columns": [{"name": "id", "type": "VARCHAR"}]})
    registry = TableRegistry(generator, config=config)

    with pytest.raises(InvalidType):
        registry.connect("users", "x")
    assert "users" not in registry.schema_cache

    generator.schema = USERS_SCHEMA
    handle = registry.connect("users", "x")
    assert generator.schema_calls == 2
    assert len(handle.columns) == 5


def test_duplicate_columns_rejected(config):
    generator = FakeGenerator(
        schema={"columns": [{"name": "id", "type": "INTEGER"}, {"name": "id", "type": "TEXT"}]}
    )
    registry = TableRegistry(generator, config=config)
    with pytest.raises(DuplicateColumn):
        registry.resolve_columns("users", "x")


def test_generator_failure_is_a_schema_error(config):
    generator = FakeGenerator(schema=GeneratorError("OPENAI_API_KEY not set"))
    registry = TableRegistry(generator, config=config)

    with pytest.raises(SchemaGenerationError, match="OPENAI_API_KEY") as excinfo:
        registry.resolve_columns("users", "x")
    assert isinstance(excinfo.value, SchemaError)
    assert isinstance(excinfo.value, GeneratorError)
    assert len(registry.schema_cache) == 0


def test_missing_prompt_template_fails_resolution(tmp_path, generator):
    config = Configuration(cache_dir=str(tmp_path / "cache"), schema_prompt_path=str(tmp_path / "missing.txt"))
    registry = TableRegistry(generator, config=config)
    with pytest.raises(SchemaError, match="failed to render schema prompt"):
        registry.resolve_columns("users", "x")
    assert generator.schema_calls == 0


def test_prompt_template_file_overrides_default(tmp_path, generator):
    template = tmp_path / "schema.txt"
    template.write_text("Design {table_name}: {table_description}", encoding="utf-8")
    config = Configuration(cache_dir=str(tmp_path / "cache"), schema_prompt_path=str(template))
    registry = TableRegistry(generator, config=config)

    registry.resolve_columns("users", "newsletter subscribers")
    assert generator.calls[0][1] == "Design users: newsletter subscribers"


def test_declare_schema_quotes_identifiers(registry):
    columns = registry.resolve_columns("users", "x")
    sql = registry.declare_schema(columns, table_name="users")
    assert sql == (
        'CREATE TABLE "users" ("id" INTEGER PRIMARY KEY, "name" TEXT NOT NULL, '
        '"age" INTEGER, "score" REAL, "avatar" BLOB)'
    )


def test_schema_cache_stats(registry):
    registry.resolve_columns("users", "x")
    registry.resolve_columns("users", "x")
    stats = registry.schema_cache.get_cache_stats()
    assert stats["entries"] == 1
    assert stats["hits"] >= 1
