from franchise_ops.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.ACTION_ITEM_EXPIRY_DAYS == 7
    assert settings.AUTOMATION_BATCH_SIZE == 50
    assert settings.AUTOMATION_MOCK_MODE is True


def test_blank_cron_secret_is_not_configured():
    assert not Settings(_env_file=None, CRON_SECRET="   ").cron_secret_configured()
    assert Settings(_env_file=None, CRON_SECRET="s3cret").cron_secret_configured()


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("AUTOMATION_BATCH_SIZE", "10")
    monkeypatch.setenv("AUTOMATION_MOCK_MODE", "false")

    settings = Settings(_env_file=None)

    assert settings.AUTOMATION_BATCH_SIZE == 10
    assert settings.AUTOMATION_MOCK_MODE is False


def test_development_pool_is_capped():
    config = Settings(_env_file=None, environment="development", DB_POOL_MAX_SIZE=20).get_db_pool_config()

    assert config["max_size"] == 5
    assert config["timeout"] == 15.0


def test_production_pool_uses_configured_sizes():
    config = Settings(_env_file=None, environment="production", DB_POOL_MAX_SIZE=20).get_db_pool_config()

    assert config["max_size"] == 20
