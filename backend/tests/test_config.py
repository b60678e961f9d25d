"""
Settings tests — environment profiles and the production secret check.
"""

import pytest
from pydantic import ValidationError

from app.config import Settings


class TestSettings:

    def test_production_rejects_dev_secret(self):
        with pytest.raises(ValidationError, match="JWT_SECRET_KEY"):
            Settings(_env_file=None, APP_ENV="production")

    def test_production_accepts_real_secret(self):
        settings = Settings(_env_file=None, APP_ENV="production", JWT_SECRET_KEY="s3cr3t-from-vault")
        assert settings.is_production
        assert settings.LOG_LEVEL == "error"

    def test_log_level_follows_environment(self):
        assert Settings(_env_file=None, APP_ENV="development").LOG_LEVEL == "debug"
        assert Settings(_env_file=None, APP_ENV="test", LOG_LEVEL="info").LOG_LEVEL == "info"

    @pytest.mark.parametrize("field,value", [("BCRYPT_ROUNDS", 3), ("JWT_EXPIRE_MINUTES", 0)])
    def test_out_of_range_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})
