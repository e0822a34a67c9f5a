"""Configuration and model construction shared by the engine and the shell."""

import os
from pathlib import Path
from typing import Optional

try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    pass


DEFAULT_LLM_MODEL = "openai:gpt-4o-2024-08-06"
DEFAULT_CACHE_DIR = ".cache"
DEFAULT_MODULE_NAME = "infinidb"

# Provider prefix -> environment variable holding its credential.
PROVIDER_API_KEYS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "together": "TOGETHER_API_KEY",
    "fireworks": "FIREWORKS_API_KEY",
    "google_genai": "GOOGLE_API_KEY",
}


def sanitize_path_component(value: object) -> str:
    """Filesystem-safe key for a table name.

    Separators are spelled out rather than collapsed so that distinct names
    never share a cache file.
    """
    s = str(value or "").strip()
    if not s:
        return "unknown"
    return s.replace("/", "_slash_").replace("\\", "_backslash_").replace(":", "_colon_")


def strip_quotes(value: str) -> str:
    s = str(value).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"', "`"):
        quote = s[0]
        s = s[1:-1].replace(quote * 2, quote).strip()
    return s


class Configuration:
    """Runtime settings for table generation."""

    def __init__(
        self,
        llm_model: str = DEFAULT_LLM_MODEL,
        temperature: float = 0.0,
        cache_dir: str = DEFAULT_CACHE_DIR,
        schema_prompt_path: Optional[str] = None,
        data_prompt_path: Optional[str] = None,
        module_name: str = DEFAULT_MODULE_NAME,
        lock_timeout: Optional[float] = None,
        **_kwargs,
    ):
        self.llm_model = llm_model
        self.temperature = temperature
        self.cache_dir = cache_dir
        self.schema_prompt_path = schema_prompt_path
        self.data_prompt_path = data_prompt_path
        self.module_name = module_name
        self.lock_timeout = lock_timeout

    @classmethod
    def from_env(cls, **overrides) -> "Configuration":
        """Build a configuration from INFINIDB_* variables; keyword overrides win."""
        settings = {
            "llm_model": os.getenv("INFINIDB_LLM_MODEL") or DEFAULT_LLM_MODEL,
            "temperature": float(os.getenv("INFINIDB_TEMPERATURE") or 0.0),
            "cache_dir": os.getenv("INFINIDB_CACHE_DIR") or DEFAULT_CACHE_DIR,
            "schema_prompt_path": os.getenv("INFINIDB_SCHEMA_PROMPT") or None,
            "data_prompt_path": os.getenv("INFINIDB_DATA_PROMPT") or None,
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**settings)

    @property
    def provider(self) -> str:
        model = str(self.llm_model or "")
        return model.split(":", 1)[0] if ":" in model else "openai"

    def required_api_key_env(self) -> Optional[str]:
        """Name of the credential variable the configured provider needs, if known."""
        return PROVIDER_API_KEYS.get(self.provider)

    def get_data_cache_dir(self) -> str:
        return str(Path(self.cache_dir).expanduser())

    def create_llm(self):
        """Create the LangChain chat model used for schema and data generation."""
        try:
            from langchain.chat_models import init_chat_model
        except Exception as e:  # pragma: no cover
            raise ImportError("Missing LangChain dependency for LLM initialization.") from e
        model = self.llm_model if ":" in str(self.llm_model) else f"openai:{self.llm_model}"
        return init_chat_model(model, temperature=self.temperature)
