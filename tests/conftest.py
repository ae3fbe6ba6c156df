import os
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def mock_settings_env_vars(tmp_path):
    """Automatically mock HOME and environment variables to ensure test isolation."""
    fake_home = tmp_path / "fake_home"
    fake_home.mkdir()

    with patch("pathlib.Path.home", return_value=fake_home):
        env = {key: value for key, value in os.environ.items() if key != "TELECODE_CONFIG_FILE"}
        env["HOME"] = str(fake_home)
        with patch.dict(os.environ, env, clear=True):
            yield
