import yaml

from planner.core.config import DEFAULT_CONFIG, Config


def test_default_config_written_on_first_run(tmp_path):
    path = tmp_path / "config" / "config.yaml"
    config = Config(config_path=str(path), watch=False)
    assert path.exists()
    assert yaml.safe_load(path.read_text())["components"].keys() == DEFAULT_CONFIG["components"].keys()
    assert config.get_component_config("Email Digest")["update_interval"] == 60


def test_env_substitution_and_dotenv(tmp_path, monkeypatch):
    monkeypatch.delenv("PLANNER_TEST_DB", raising=False)
    (tmp_path / ".env").write_text("PLANNER_TEST_DB=/tmp/from-dotenv.db\n")
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"database": {"path": "${PLANNER_TEST_DB}"}, "mail": {"smtp_host": "$UNSET_VAR_X"}}))
    config = Config(config_path=str(path), watch=False)
    assert config.data["database"]["path"] == "/tmp/from-dotenv.db"
    # unresolved placeholders are kept verbatim
    assert config.data["mail"]["smtp_host"] == "$UNSET_VAR_X"


def test_invalid_reload_keeps_previous_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"components": {"Email Digest": {"enable": True}}}))
    config = Config(config_path=str(path), watch=False)
    path.write_text("- just\n- a list\n")
    config.reload()
    assert config.get_component_config("Email Digest") == {"enable": True}


def test_reload_notifies_callbacks(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"components": {"Email Digest": {"enable": True}}}))
    config = Config(config_path=str(path), watch=False)
    seen = []
    config.register_change_callback(seen.append)
    path.write_text(yaml.safe_dump({"components": {"Email Digest": {"enable": False}}}))
    config.reload()
    assert seen and seen[0]["components"]["Email Digest"] == {"enable": False}


def test_save_component_config(tmp_path):
    path = tmp_path / "config.yaml"
    config = Config(config_path=str(path), watch=False)
    config.save_component_config("Deadline Notifications", {"enable": False})
    assert yaml.safe_load(path.read_text())["components"]["Deadline Notifications"] == {"enable": False}
