"""Environment-driven settings for search-evals."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from searchevals.grading import DEFAULT_API_URL, DEFAULT_INSTRUCTIONS


class Settings(BaseSettings):
    """
    Paths and credentials for a run.

    Read from the environment (``.env`` is loaded by the CLI first);
    empty variables fall back to the defaults below.
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True, env_ignore_empty=True)

    queries_dir: str = Field("queries", validation_alias="SEARCH_EVALS_QUERIES_DIR")
    configs_path: str = Field("configs.yaml", validation_alias="SEARCH_EVALS_CONFIGS")
    results_dir: str = Field("results", validation_alias="SEARCH_EVALS_RESULTS_DIR")
    evals_dir: str = Field("evals", validation_alias="SEARCH_EVALS_EVALS_DIR")
    instructions_path: str = Field(DEFAULT_INSTRUCTIONS, validation_alias="SEARCH_EVALS_INSTRUCTIONS")

    # Grading LLM
    eval_model: str = Field("gpt-4o", validation_alias="EVAL_MODEL")
    openai_api_key: str = Field("", validation_alias="OPENAI_API_KEY")
    openai_api_url: str = Field(DEFAULT_API_URL, validation_alias="OPENAI_API_URL")

    # Max provider calls in flight; 1 keeps the run strictly sequential
    parallel: int = Field(1, ge=1, validation_alias="SEARCH_EVALS_PARALLEL")
