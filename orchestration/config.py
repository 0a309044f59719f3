"""
Quest engine settings and logging setup.

Settings come from the environment (a `.env` file is loaded first):

    QUEST_STORAGE_BACKEND     memory | file | mongo (default: memory)
    QUEST_STORAGE_DIR         directory of the file backend (default: quest_data)
    QUEST_STORAGE_PREFIX      storage key prefix (default: quests_v2)
    MONGODB_URI               MongoDB connection string
    QUEST_DB_NAME             MongoDB database (default: quest_engine)
    QUEST_LOG_LEVEL           logging level name (default: INFO)
    QUEST_LOG_FILE            optional log file path
    QUEST_RANDOM_SEED         optional int, makes generation reproducible
    QUEST_SHORT_CYCLE_TITLE   display title of the short-cycle section
    QUEST_LONG_CYCLE_TITLE    display title of the long-cycle section
    QUEST_INACTIVITY_MINUTES  activity pause threshold (default: 5)
"""

import os
import logging
from typing import Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from models.quests import SectionScope
from tools.template_generator import SECTION_TITLES


class QuestSettings(BaseModel):
    storage_backend: Literal["memory", "file", "mongo"] = "memory"
    storage_dir: str = "quest_data"
    storage_prefix: str = "quests_v2"
    mongodb_uri: str = "mongodb://localhost:27017"
    db_name: str = "quest_engine"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    random_seed: Optional[int] = None
    short_cycle_title: str = SECTION_TITLES[SectionScope.SHORT_CYCLE]
    long_cycle_title: str = SECTION_TITLES[SectionScope.LONG_CYCLE]
    inactivity_minutes: float = Field(default=5, gt=0)

    @field_validator("storage_backend", mode="before")
    @classmethod
    def lower_backend(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def section_titles(self) -> Dict[SectionScope, str]:
        return {
            SectionScope.SHORT_CYCLE: self.short_cycle_title,
            SectionScope.LONG_CYCLE: self.long_cycle_title,
        }


ENV_FIELDS = {
    "QUEST_STORAGE_BACKEND": "storage_backend",
    "QUEST_STORAGE_DIR": "storage_dir",
    "QUEST_STORAGE_PREFIX": "storage_prefix",
    "MONGODB_URI": "mongodb_uri",
    "QUEST_DB_NAME": "db_name",
    "QUEST_LOG_LEVEL": "log_level",
    "QUEST_LOG_FILE": "log_file",
    "QUEST_RANDOM_SEED": "random_seed",
    "QUEST_SHORT_CYCLE_TITLE": "short_cycle_title",
    "QUEST_LONG_CYCLE_TITLE": "long_cycle_title",
    "QUEST_INACTIVITY_MINUTES": "inactivity_minutes",
}


def load_settings(use_dotenv: bool = True) -> QuestSettings:
    """Build QuestSettings from the environment. Empty variables are ignored."""
    if use_dotenv:
        load_dotenv()
    values = {}
    for env_name, field_name in ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw.strip() != "":
            values[field_name] = raw
    return QuestSettings.model_validate(values)


def configure_logging(settings: QuestSettings) -> None:
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        log_dir = os.path.dirname(settings.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
