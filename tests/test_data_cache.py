import json
import logging

import pytest

from infinidb import DataError, DataGenerationError, EmptyData, GeneratorError, MalformedResponse, TableRegistry
from infinidb.cache_scripts import DataCache, get_data_cache

from conftest import USERS_ROWS, FakeGenerator


def _read_all(cursor, column_count):
    out = []
    cursor.filter()
    while not cursor.at_end():
        out.append(tuple(cursor.read_column(i) for i in range(column_count)))
        cursor.advance()
    return out


def test_first_open_generates_and_persists(registry, generator, cache_dir):
    handle = registry.connect("users", "newsletter subscribers")
    cursor = handle.open()

    assert generator.data_calls == 1
    assert cursor.row_count == 3
    cache_file = cache_dir / "users_data.json"
    assert cache_file.exists()
    assert json.loads(cache_file.read_text(encoding="utf-8")) == USERS_ROWS["rows"]


def test_data_prompt_carries_columns(registry, generator):
    registry.connect("users", "newsletter subscribers").open()
    title, prompt, shape = generator.calls[-1]
    assert title == "table_data"
    assert "newsletter subscribers" in prompt
    assert "- age INTEGER" in prompt
    assert shape["properties"]["rows"]["items"]["required"] == ["id", "name", "age", "score", "avatar"]


def test_reopen_reuses_cache(registry, generator):
    handle = registry.connect("users", "x")
    first = handle.open()
    second = handle.open()
    third = registry.connect("users", "x").open()

    assert generator.data_calls == 1
    assert _read_all(first, 5) == _read_all(second, 5) == _read_all(third, 5)


def test_cache_survives_restart_without_generator(registry, make_registry, cache_dir):
    before = _read_all(registry.connect("users", "x").open(), 5)
    file_bytes = (cache_dir / "users_data.json").read_bytes()

    # New process: schema is regenerated, data must come from disk.
    offline = FakeGenerator(data=GeneratorError("service unreachable"))
    restarted = make_registry(offline)
    after = _read_all(restarted.connect("users", "x").open(), 5)

    assert offline.data_calls == 0
    assert after == before
    assert (cache_dir / "users_data.json").read_bytes() == file_bytes


def test_empty_data_is_not_cached(config, cache_dir):
    generator = FakeGenerator(data={"rows": []})
    registry = TableRegistry(generator, config=config)
    handle = registry.connect("users", "x")
    with pytest.raises(EmptyData):
        handle.open()
    assert not (cache_dir / "users_data.json").exists()

    generator.data = USERS_ROWS
    assert handle.open().row_count == 3
    assert generator.data_calls == 2


def test_malformed_data_is_not_cached(make_registry, cache_dir):
    generator = FakeGenerator(data={"rows": [{"id": 1, "unknown": "x"}]})
    registry = make_registry(generator)
    with pytest.raises(MalformedResponse):
        registry.connect("users", "x").open()
    assert not (cache_dir / "users_data.json").exists()


def test_generator_failure_is_a_data_error(make_registry, cache_dir):
    registry = make_registry(FakeGenerator(data=GeneratorError("timeout")))
    with pytest.raises(DataGenerationError) as excinfo:
        registry.connect("users", "x").open()
    assert isinstance(excinfo.value, DataError)
    assert isinstance(excinfo.value.__cause__, GeneratorError)
    assert not (cache_dir / "users_data.json").exists()


@pytest.mark.parametrize("content", ["not json", "[]", '{"rows": []}', "[1, 2]"])
def test_ill_formed_cache_file_is_regenerated(make_registry, cache_dir, content):
    cache_dir.mkdir(parents=True, exist_ok=True)
    (cache_dir / "users_data.json").write_text(content, encoding="utf-8")

    generator = FakeGenerator()
    registry = make_registry(generator)
    cursor = registry.connect("users", "x").open()

    assert generator.data_calls == 1
    assert cursor.row_count == 3
    assert json.loads((cache_dir / "users_data.json").read_text(encoding="utf-8")) == USERS_ROWS["rows"]


def test_write_failure_is_logged_and_not_fatal(make_registry, monkeypatch, caplog):
    generator = FakeGenerator()
    registry = make_registry(generator)

    def _fail(table_name, rows):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(registry.data_cache, "_write_cache_file", _fail)
    handle = registry.connect("users", "x")

    with caplog.at_level(logging.WARNING):
        cursor = handle.open()
    assert cursor.row_count == 3
    assert "Failed to write to cache" in caplog.text

    # Nothing was persisted, so the next open generates again.
    handle.open()
    assert generator.data_calls == 2
    assert registry.data_cache.get_cache_stats()["write_failures"] == 2


def test_cache_file_name_is_sanitized(tmp_path):
    cache = DataCache(str(tmp_path))
    assert cache.get_cache_path("a/b:c").name == "a_slash_b_colon_c_data.json"
    assert cache.get_cache_path("Users").name == "Users_data.json"


def test_set_rows_round_trip_through_new_instance(tmp_path):
    rows = ({"id": 1, "name": "Ada"}, {"id": 2, "name": None})
    DataCache(str(tmp_path)).set_rows("users", rows)

    fresh = DataCache(str(tmp_path))
    assert fresh.get_rows("users") == rows
    assert fresh.get_cache_stats()["file_hits"] == 1
    assert list(tmp_path.glob("*.tmp")) == []


def test_get_data_cache_shares_instances(tmp_path):
    assert get_data_cache(str(tmp_path)) is get_data_cache(str(tmp_path / "sub" / ".."))
    assert get_data_cache(str(tmp_path)) is not get_data_cache(str(tmp_path / "other"))
