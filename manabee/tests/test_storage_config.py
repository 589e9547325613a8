import pytest

from manabee.storage.config import BACKEND_LOCAL, BACKEND_REMOTE, StorageConfig, load_storage_config
from manabee.storage.errors import ConfigurationError


_VARS = ("MANABEE_BACKEND", "MANABEE_LOCAL_STORE_PATH", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")


@pytest.fixture
def clean_env(monkeypatch):
    # setenv + delenv so teardown also removes values a .env file added.
    for name in _VARS:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    return monkeypatch


def test_defaults_to_local_in_memory():
    cfg = load_storage_config({})
    assert cfg == StorageConfig(backend=BACKEND_LOCAL)
    assert cfg.remote_configured is False


def test_backend_is_case_insensitive_and_paths_are_trimmed():
    cfg = load_storage_config({"MANABEE_BACKEND": " Local ", "MANABEE_LOCAL_STORE_PATH": "  /tmp/m.json "})
    assert cfg.backend == BACKEND_LOCAL
    assert cfg.local_store_path == "/tmp/m.json"


def test_invalid_backend_is_rejected():
    with pytest.raises(ConfigurationError) as exc:
        load_storage_config({"MANABEE_BACKEND": "cloud"})
    assert "invalid_backend" in str(exc.value)


@pytest.mark.parametrize(
    "env, missing",
    [
        ({}, ["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"]),
        ({"SUPABASE_URL": "https://p.supabase.co"}, ["SUPABASE_SERVICE_ROLE_KEY"]),
        ({"SUPABASE_SERVICE_ROLE_KEY": "   "}, ["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"]),
    ],
)
def test_remote_requires_connection_parameters(env, missing):
    with pytest.raises(ConfigurationError) as exc:
        load_storage_config({"MANABEE_BACKEND": "remote", **env})
    for name in missing:
        assert name in str(exc.value)


def test_remote_config_complete():
    cfg = load_storage_config(
        {"MANABEE_BACKEND": "remote", "SUPABASE_URL": "https://p.supabase.co", "SUPABASE_SERVICE_ROLE_KEY": "srk"}
    )
    assert cfg.backend == BACKEND_REMOTE
    assert cfg.remote_configured is True


def test_reads_process_environment(clean_env):
    clean_env.setenv("MANABEE_BACKEND", "local")
    clean_env.setenv("MANABEE_LOCAL_STORE_PATH", "data/store.json")
    assert load_storage_config().local_store_path == "data/store.json"


def test_dotenv_file_is_loaded_without_overriding(clean_env, tmp_path):
    (tmp_path / ".env").write_text(
        "MANABEE_BACKEND=remote\nSUPABASE_URL=https://p.supabase.co\nSUPABASE_SERVICE_ROLE_KEY=from-file\n",
        encoding="utf-8",
    )
    clean_env.chdir(tmp_path)
    clean_env.setenv("SUPABASE_SERVICE_ROLE_KEY", "from-env")
    cfg = load_storage_config(dotenv=True)
    assert cfg.backend == BACKEND_REMOTE
    assert cfg.supabase_url == "https://p.supabase.co"
    assert cfg.supabase_key == "from-env"
