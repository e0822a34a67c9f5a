"""Shared pytest fixtures: a scripted generator and per-test cache directories."""

import copy
import threading
from typing import Any, Dict, List, Optional, Tuple

import pytest

from infinidb import Configuration, TableRegistry
from infinidb.cache_scripts import DataCache, SchemaCache


USERS_SCHEMA: Dict[str, Any] = {
    "columns": [
        {"name": "id", "type": "INTEGER", "constraints": "PRIMARY KEY", "description": "Unique user id"},
        {"name": "name", "type": "TEXT", "constraints": "NOT NULL", "description": "Full name"},
        {"name": "age", "type": "INTEGER", "constraints": "", "description": "Age in years"},
        {"name": "score", "type": "REAL", "constraints": "", "description": "Loyalty score"},
        {"name": "avatar", "type": "BLOB", "constraints": "", "description": "Avatar bytes"},
    ]
}

USERS_ROWS: Dict[str, Any] = {
    "rows": [
        {"id": 1, "name": "Ada", "age": 36, "score": 91.5, "avatar": "ada.png"},
        {"id": 2, "name": "Grace", "age": 45, "score": 88, "avatar": "grace.png"},
        {"id": 3, "name": "Linus", "age": 28, "score": 70.25},
    ]
}


class FakeGenerator:
    """Answers schema and data requests from canned payloads and records every call.

    A payload that is an exception instance is raised instead of returned.
    When `gate` is set, every call blocks until the event is set.
    """

    def __init__(
        self,
        schema: Any = USERS_SCHEMA,
        data: Any = USERS_ROWS,
        gate: Optional[threading.Event] = None,
    ) -> None:
        self.schema = schema
        self.data = data
        self.gate = gate
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self._lock = threading.Lock()

    def count(self, title: str) -> int:
        with self._lock:
            return sum(1 for kind, _, _ in self.calls if kind == title)

    @property
    def schema_calls(self) -> int:
        return self.count("table_schema")

    @property
    def data_calls(self) -> int:
        return self.count("table_data")

    def generate(self, prompt: str, output_shape: Dict[str, Any]) -> Any:
        title = output_shape["title"]
        with self._lock:
            self.calls.append((title, prompt, output_shape))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        payload = self.schema if title == "table_schema" else self.data
        if isinstance(payload, BaseException):
            raise payload
        return copy.deepcopy(payload)


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def config(cache_dir):
    return Configuration(llm_model="openai:gpt-4o-mini", cache_dir=str(cache_dir))


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def registry(generator, config):
    return TableRegistry(generator, config=config)


@pytest.fixture
def make_registry(config):
    """Build a registry with fresh in-memory state over the shared cache directory (a 'restart')."""

    def _make(generator: Any) -> TableRegistry:
        return TableRegistry(
            generator,
            config=config,
            schema_cache=SchemaCache(),
            data_cache=DataCache(config.get_data_cache_dir()),
        )

    return _make
