"""
config.py

Typed configuration loading and validation for rhythmconv.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- A missing config file is not an error: built-in defaults apply

Config file location
- If RHYTHMCONV_CONFIG_PATH is set, that file is used.
- Otherwise rhythmconv searches these paths in order and uses the first one that exists:
  1) ./rhythmconv_config.json (current working directory)
  2) <user config dir>/rhythmconv/rhythmconv_config.json
  3) <user config dir>/rhythmconv/config.json

Example config file (rhythmconv_config.json)
{
  "defaults": {
    "creator": "Unknown Creator",
    "key_count": 4
  },
  "stepmania": {
    "sample_length_seconds": 12.0
  },
  "web_server": {
    "host": "127.0.0.1",
    "port": 5178
  }
}
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator


class ChartDefaults(BaseModel):
    """Values used when a chart leaves a field blank."""

    title: str = Field(default="Unknown Title")
    alt_title: str = Field(default="Unknown Title")
    artist: str = Field(default="Unknown Artist")
    alt_artist: str = Field(default="Unknown Artist")
    creator: str = Field(default="Unknown Creator")
    genre: str = Field(default="Unknown Genre")
    source: str = Field(default="Unknown Source")
    difficulty_name: str = Field(default="Unknown Difficulty")
    bg_path: str = Field(default="Unknown Background Path")
    song_path: str = Field(default="Unknown Song File Path")
    audio_offset: int = Field(default=0, description="Milliseconds.")
    preview_time: int = Field(default=0, description="Milliseconds.")
    key_count: int = Field(default=4, ge=1, le=18, description="Lane count assumed when a chart does not declare one.")

    model_config = {"frozen": True}


DEFAULT_CHART_DEFAULTS = ChartDefaults()


class StepManiaConfig(BaseModel):
    sample_length_seconds: float = Field(default=12.0, gt=0.0, description="Written as #SAMPLELENGTH.")


class WebServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1", description="Bind address for the local conversion server.")
    port: int = Field(default=5178, ge=1, le=65535, description="Port for the local conversion server.")

    @field_validator("host")
    @classmethod
    def validate_host(cls, value: str) -> str:
        trimmed = (value or "").strip()
        if not trimmed:
            raise ValueError("host must be a non-empty string")
        return trimmed


class AppConfig(BaseModel):
    defaults: ChartDefaults = Field(default_factory=ChartDefaults)
    stepmania: StepManiaConfig = Field(default_factory=StepManiaConfig)
    web_server: WebServerConfig = Field(default_factory=WebServerConfig)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("rhythmconv", "rhythmconv"))
    return [
        Path.cwd() / "rhythmconv_config.json",
        config_directory / "rhythmconv_config.json",
        config_directory / "config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("RHYTHMCONV_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Override variables:
    - RHYTHMCONV_WEB_HOST
    - RHYTHMCONV_WEB_PORT
    - RHYTHMCONV_DEFAULT_CREATOR
    - RHYTHMCONV_SM_SAMPLE_LENGTH
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            section = dict(section)
        else:
            section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    defaults_section = ensure_nested(updated_config, "defaults")
    stepmania_section = ensure_nested(updated_config, "stepmania")
    web_server_section = ensure_nested(updated_config, "web_server")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_int(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = int(value_text)
        except ValueError:
            return

    def override_float(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = float(value_text)
        except ValueError:
            return

    override_string("RHYTHMCONV_WEB_HOST", web_server_section, "host")
    override_int("RHYTHMCONV_WEB_PORT", web_server_section, "port")
    override_string("RHYTHMCONV_DEFAULT_CREATOR", defaults_section, "creator")
    override_float("RHYTHMCONV_SM_SAMPLE_LENGTH", stepmania_section, "sample_length_seconds")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        raise ValueError(f"Config validation failed for {resolved_path or '(built-in defaults)'}:\n{exception}") from exception

    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(), ensure_ascii=False, indent=2)


def main() -> int:
    try:
        config, resolved_path = load_config()
    except Exception as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": json.loads(to_json(config)),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
