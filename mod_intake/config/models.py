from __future__ import annotations

from typing import Any, Dict, List, Optional, cast

from pydantic import BaseModel, ConfigDict, Field


class _BaseConfigModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class PipelineConfig(_BaseConfigModel):
    override_candidate_threshold: float = 50
    lazy_score_chunk_size: int = Field(default=25, ge=1)
    auto_match_min_score: float = 30


class ArchivesConfig(_BaseConfigModel):
    extensions: List[str] = Field(default_factory=lambda: ["zip", "7z", "rar"])
    temp_dir_name: str = ".intake_temp"


class StorageConfig(_BaseConfigModel):
    database_path: str = "data/mod_intake.sqlite"


class CatalogConfig(_BaseConfigModel):
    path: Optional[str] = None


class LoggingConfig(_BaseConfigModel):
    level: str = "INFO"
    json_output: bool = Field(default=False, alias="json")
    file: bool = True
    dir: Optional[str] = None


class ConfigModel(_BaseConfigModel):
    mods_root: Optional[str] = None
    game_id: str = "default"
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    archives: ArchivesConfig = Field(default_factory=ArchivesConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def validate_config(payload: Dict[str, Any]) -> ConfigModel:
    return cast(ConfigModel, ConfigModel.model_validate(payload or {}))
