"""
Configuration management for the reconciliation engine.

Loads settings from environment variables (and a project-root .env file)
with sensible defaults. List-valued settings are plain comma-separated
strings in the environment; the parsed views are exposed as properties.
"""

from functools import cached_property, lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

from .errors import ConfigurationError

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(',') if item.strip()]


class EngineSettings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Exclusion rules
    PARTNER_DOMAINS: str = ''
    ARCHIVED_APPS: str = ''
    MASS_PROVIDER_DOMAINS: str = ''

    # Product mapping, e.g. "com.example.jira-addon=Jira,com.example.wiki=Confluence"
    ADDONKEY_PLATFORMS: str = ''

    # Deal properties
    DEAL_DEALNAME: str = '{addon_name} at {company}'
    DEAL_ORIGIN: str | None = None
    DEAL_RELATED_PRODUCTS: str | None = None

    # CRM deal stage ids
    DEAL_STAGE_EVAL: str = 'eval'
    DEAL_STAGE_CLOSED_WON: str = 'closedWon'
    DEAL_STAGE_CLOSED_LOST: str = 'closedLost'

    # Behaviour switches
    CREATE_EVAL_DEALS: bool = False
    TRACK_CHANGE_EVENTS: bool = False

    # Logging / audit output
    LOG_LEVEL: str = 'INFO'
    LOG_JSON: bool = False
    AUDIT_DIR: str | None = None

    @cached_property
    def partner_domain_set(self) -> frozenset[str]:
        return frozenset(d.lower() for d in _split_csv(self.PARTNER_DOMAINS))

    @cached_property
    def archived_app_set(self) -> frozenset[str]:
        return frozenset(_split_csv(self.ARCHIVED_APPS))

    @cached_property
    def extra_provider_domains(self) -> list[str]:
        return _split_csv(self.MASS_PROVIDER_DOMAINS)

    @cached_property
    def addon_platforms(self) -> dict[str, str]:
        """Parse ADDONKEY_PLATFORMS into an addon key → platform mapping."""
        mapping: dict[str, str] = {}
        for pair in _split_csv(self.ADDONKEY_PLATFORMS):
            key, sep, platform = pair.partition('=')
            if not sep or not key.strip() or not platform.strip():
                raise ConfigurationError(
                    'Malformed ADDONKEY_PLATFORMS entry',
                    context={'entry': pair},
                )
            mapping[key.strip()] = platform.strip()
        return mapping

    def platform_for(self, addon_key: str) -> str:
        """Product name reported to the CRM for an addon key."""
        return self.addon_platforms.get(addon_key, addon_key)

    def render_deal_name(self, values: dict[str, Any]) -> str:
        """
        Render DEAL_DEALNAME with the given template values.

        Raises:
            ConfigurationError: If the template references an unknown field
        """
        try:
            return self.DEAL_DEALNAME.format_map(values)
        except (KeyError, IndexError, ValueError) as exc:
            raise ConfigurationError(
                f'Invalid DEAL_DEALNAME template: {exc}',
                context={'template': self.DEAL_DEALNAME, 'fields': sorted(values)},
            ) from exc


@lru_cache
def get_settings() -> EngineSettings:
    """Cached settings singleton."""
    return EngineSettings()
