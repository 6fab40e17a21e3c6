import pytest

from onetask.config_manager import ENV_OVERRIDES, AppConfig, get_config
from onetask.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_OVERRIDES:
        monkeypatch.delenv(key, raising=False)


def test_defaults_without_runtime_file(tmp_path):
    cfg = get_config(tmp_path / "missing.yaml")

    assert cfg.REQUEST_TIMEOUT_SECONDS == 30.0
    assert cfg.CHAT_TIMEOUT_SECONDS == 45.0
    assert cfg.CHAT_MAX_RETRIES == 1
    assert cfg.PENDING_TASK_LIMIT == 5
    assert cfg.TIMEZONE is None


def test_yaml_overrides_and_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text(
        "BASE_URL: http://localhost:7071/api/\n"
        "HABIT_LIMIT: 2\n"
        "NOT_A_SETTING: true\n",
        encoding="utf-8",
    )

    cfg = get_config(path)

    assert cfg.BASE_URL == "http://localhost:7071/api"
    assert cfg.HABIT_LIMIT == 2
    assert not hasattr(cfg, "NOT_A_SETTING")


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text("# nothing set\n", encoding="utf-8")
    assert get_config(path) == AppConfig()


def test_malformed_yaml_is_a_config_error(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text("BASE_URL: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError) as exc_info:
        get_config(path)
    assert str(path) in exc_info.value.get_user_message()


def test_non_mapping_yaml_is_a_config_error(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        get_config(path)


def test_environment_beats_yaml(tmp_path, monkeypatch):
    path = tmp_path / "runtime.yaml"
    path.write_text("TIMEZONE: Europe/Berlin\n", encoding="utf-8")
    monkeypatch.setenv("ONETASK_TIMEZONE", "America/Chicago")
    monkeypatch.setenv("ONETASK_USER_ID", "u42")

    cfg = get_config(path)

    assert cfg.TIMEZONE == "America/Chicago"
    assert cfg.DEMO_USER_ID == "u42"


@pytest.mark.parametrize("timeout", [10, 29.9, 46, 120])
def test_chat_timeout_must_stay_in_range(timeout):
    with pytest.raises(ConfigError):
        AppConfig(CHAT_TIMEOUT_SECONDS=timeout)


def test_chat_timeout_bounds_are_inclusive():
    assert AppConfig(CHAT_TIMEOUT_SECONDS=30).CHAT_TIMEOUT_SECONDS == 30
    assert AppConfig(CHAT_TIMEOUT_SECONDS=45).CHAT_TIMEOUT_SECONDS == 45


@pytest.mark.parametrize("retries", [-1, 2, 5])
def test_at_most_one_chat_retry(retries):
    with pytest.raises(ConfigError):
        AppConfig(CHAT_MAX_RETRIES=retries)


def test_trailing_slashes_are_stripped():
    cfg = AppConfig(BASE_URL="https://a.example.com/api/", CHAT_BASE_URL="https://b.example.com/")
    assert cfg.BASE_URL == "https://a.example.com/api"
    assert cfg.CHAT_BASE_URL == "https://b.example.com"
