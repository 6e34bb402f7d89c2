from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..utils.io import load_yaml_or_json

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class PreviewSettings(BaseModel):
    auto_open: bool = Field(True, description="Open the preview when a supported file is activated")
    on_cursor_move: bool = Field(True, description="Push the current line to the preview on cursor moves")
    width: int = Field(500, ge=50, description="Rendered structure width in pixels")
    height: int = Field(300, ge=50, description="Rendered structure height in pixels")
    stereo_annotations: bool = Field(True, description="Annotate stereo centres in renders")


class ScriptHostSettings(BaseModel):
    node: str = Field("node", description="Node.js executable used to run build-format files")
    timeout: float = Field(30.0, gt=0.0, description="Seconds before a module load is abandoned")


class Settings(BaseModel):
    dsl_suffixes: list[str] = Field(
        default_factory=lambda: [".selfies"], description="File suffixes of SELFIES definition files"
    )
    dsl_language_ids: list[str] = Field(
        default_factory=lambda: ["selfies"], description="Editor language ids of definition files"
    )
    build_suffix: str = Field(".smiles.js", description="File suffix of smiles-js build scripts")
    log_level: LogLevel = Field("INFO", description="Logging level (logs go to stderr)")
    trace_path: str | None = Field(
        default=None, description="Append a JSON-lines event trace to this file"
    )
    preview: PreviewSettings = Field(default_factory=PreviewSettings)
    script_host: ScriptHostSettings = Field(default_factory=ScriptHostSettings)

    @field_validator("dsl_suffixes")
    @classmethod
    def dotted_suffixes(cls, v: list[str]) -> list[str]:
        for suffix in v:
            if not suffix.startswith("."):
                raise ValueError(f"suffix must start with '.': {suffix!r}")
        return v

    @field_validator("build_suffix")
    @classmethod
    def dotted_build_suffix(cls, v: str) -> str:
        if not v.startswith("."):
            raise ValueError(f"suffix must start with '.': {v!r}")
        return v

    @classmethod
    def json_schema(cls) -> dict:
        return cls.model_json_schema()


def validate_settings_payload(payload: dict) -> Settings:
    try:
        return Settings.model_validate(payload)
    except ValidationError as e:
        raise ValueError(e) from e


def load_settings(path: str | None = None) -> Settings:
    if path is None:
        return Settings()
    return validate_settings_payload(load_yaml_or_json(path))
