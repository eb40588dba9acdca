"""
Configuration and activity-journal utilities shared by the directive core.

Kept free of imports from the rest of the package so apps/ and scripts/ can
load settings before wiring collaborators.
"""

from .config import (
    AppConfig,
    CreationSettings,
    DirectiveSettings,
    LanguageOption,
    ServicesSettings,
    TutorialSettings,
    default_languages,
    load_app_config,
)
from .journal import ActivityJournal, JournalEntry

__all__ = [
    "ActivityJournal",
    "AppConfig",
    "CreationSettings",
    "DirectiveSettings",
    "LanguageOption",
    "JournalEntry",
    "ServicesSettings",
    "TutorialSettings",
    "default_languages",
    "load_app_config",
]
