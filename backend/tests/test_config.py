import pytest

from cpa_monitor.core.config import Settings


def test_policy_overrides_from_environment(monkeypatch):
    monkeypatch.setenv("ALERT_CRITICAL_PERCENT", "40")
    monkeypatch.setenv("ALERT_WARNING_PERCENT", "20")
    monkeypatch.setenv("INTEGRITY_PLACEHOLDER_PREFIXES", "Sandbox_, qa_")
    monkeypatch.setenv("CPA_MISMATCH_TOLERANCE", "0.05")

    config = Settings(_env_file=None)

    assert config.alert_thresholds().critical == 40
    assert config.alert_thresholds().warning == 20
    assert config.integrity_policy().placeholder_prefixes == ("sandbox_", "qa_")
    assert config.normalizer_policy().cpa_mismatch_tolerance == 0.05


def test_inverted_thresholds_rejected():
    config = Settings(_env_file=None, alert_critical_percent=10, alert_warning_percent=20)

    with pytest.raises(ValueError):
        config.alert_thresholds()


def test_google_ads_configured():
    assert not Settings(_env_file=None, google_ads_developer_token="x").google_ads_configured
    assert Settings(
        _env_file=None,
        google_ads_developer_token="t",
        google_ads_client_id="c",
        google_ads_client_secret="s",
        google_ads_refresh_token="r",
        google_ads_customer_id="123-456-7890",
    ).google_ads_configured
