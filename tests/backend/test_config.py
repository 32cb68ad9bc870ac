import pytest

from src.hospital_api.config import ConfigError, Settings


def test_validate_passes_with_required_settings():
    Settings(database_url="sqlite://", jwt_secret="s3cret").validate()


def test_validate_lists_every_missing_variable():
    with pytest.raises(ConfigError) as excinfo:
        Settings(database_url=None, jwt_secret=None).validate()

    message = str(excinfo.value)
    assert "DATABASE_URL" in message
    assert "JWT_SECRET" in message


def test_production_flag_follows_app_env():
    assert Settings(app_env="production").is_production
    assert not Settings(app_env="development").is_production
