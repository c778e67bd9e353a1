"""
Tests for engine settings.

Run with: pytest tests/test_config.py -v
"""

import pytest

from marketplace_sync.config import EngineSettings
from marketplace_sync.errors import ConfigurationError

from conftest import make_settings


class TestListSettings:
    """Comma-separated settings and their parsed views."""

    def test_partner_domains_lowercased(self):
        settings = EngineSettings(PARTNER_DOMAINS=' Reseller.COM, ,partner.io ')
        assert settings.partner_domain_set == frozenset({'reseller.com', 'partner.io'})

    def test_empty_defaults(self):
        settings = EngineSettings(PARTNER_DOMAINS='', ARCHIVED_APPS='', ADDONKEY_PLATFORMS='')

        assert settings.partner_domain_set == frozenset()
        assert settings.archived_app_set == frozenset()
        assert settings.addon_platforms == {}

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv('ARCHIVED_APPS', 'com.example.a,com.example.b')
        monkeypatch.setenv('CREATE_EVAL_DEALS', 'true')

        settings = EngineSettings()

        assert settings.archived_app_set == frozenset({'com.example.a', 'com.example.b'})
        assert settings.CREATE_EVAL_DEALS is True


class TestAddonPlatforms:
    """ADDONKEY_PLATFORMS parsing."""

    def test_mapping(self):
        settings = make_settings()

        assert settings.platform_for('com.example.timesheets') == 'Jira'
        assert settings.platform_for('com.example.wiki-macros') == 'Confluence'

    def test_unmapped_key_falls_back_to_itself(self):
        assert make_settings().platform_for('com.example.other') == 'com.example.other'

    @pytest.mark.parametrize('raw', ['com.example.a', 'com.example.a=', '=Jira'])
    def test_malformed_entry(self, raw):
        settings = EngineSettings(ADDONKEY_PLATFORMS=raw)

        with pytest.raises(ConfigurationError) as exc_info:
            settings.addon_platforms

        assert exc_info.value.context == {'entry': raw}


class TestDealName:
    """DEAL_DEALNAME rendering."""

    def test_render(self):
        settings = make_settings(DEAL_DEALNAME='{addon_name} at {company}')
        assert settings.render_deal_name({'addon_name': 'Timesheets', 'company': 'Acme'}) == 'Timesheets at Acme'

    def test_unknown_field(self):
        settings = make_settings(DEAL_DEALNAME='{product} for {company}')

        with pytest.raises(ConfigurationError) as exc_info:
            settings.render_deal_name({'company': 'Acme'})

        assert exc_info.value.context['fields'] == ['company']
