import pytest


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Environment with no real config file and no inherited API settings."""
    for name in ("OPENAI_API_KEY", "OPENAI_API_BASE", "OPENAI_BASE_URL", "HEYGPT_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HEYGPT_CONFIG", str(tmp_path / "heygpt.toml"))
    return tmp_path
