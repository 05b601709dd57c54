import pytest

import lyrecho.config as config
from lyrecho.exceptions import ConfigError


def test_validate_config_invalid_timeout(monkeypatch):
    monkeypatch.setattr(config, "HTTP_TIMEOUT_SECONDS", 0)
    with pytest.raises(ConfigError):
        config.validate_config()


def test_validate_config_invalid_queue_size(monkeypatch):
    monkeypatch.setattr(config, "EVENT_QUEUE_SIZE", 0)
    with pytest.raises(ConfigError):
        config.validate_config()


def test_validate_config_invalid_ttl(monkeypatch):
    monkeypatch.setattr(config, "CACHE_TTL_DAYS", -1)
    with pytest.raises(ConfigError):
        config.validate_config()


def test_get_cache_dir_env(monkeypatch, tmp_path):
    monkeypatch.setenv("LYRECHO_CACHE_DIR", str(tmp_path))
    assert config.get_cache_dir() == tmp_path


def test_get_cache_dir_xdg(monkeypatch, tmp_path):
    monkeypatch.delenv("LYRECHO_CACHE_DIR", raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    assert config.get_cache_dir() == tmp_path / "lyrecho" / "lyrics"


def test_get_cache_dir_home_default(monkeypatch):
    monkeypatch.delenv("LYRECHO_CACHE_DIR", raising=False)
    monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
    assert config.get_cache_dir().parts[-3:] == (".cache", "lyrecho", "lyrics")


def test_get_mpris_service(monkeypatch):
    monkeypatch.delenv("LYRECHO_MPRIS_SERVICE", raising=False)
    assert config.get_mpris_service() == "org.mpris.MediaPlayer2.spotify"
    monkeypatch.setenv("LYRECHO_MPRIS_SERVICE", "org.mpris.MediaPlayer2.mpv")
    assert config.get_mpris_service() == "org.mpris.MediaPlayer2.mpv"


def test_get_lrclib_url(monkeypatch):
    monkeypatch.setenv("LYRECHO_LRCLIB_URL", "http://localhost:3000/api/get")
    assert config.get_lrclib_url() == "http://localhost:3000/api/get"


def test_get_sync_offset(monkeypatch):
    monkeypatch.setenv("LYRECHO_SYNC_OFFSET", "-0.75")
    assert config.get_sync_offset() == -0.75
    monkeypatch.setenv("LYRECHO_SYNC_OFFSET", "soon")
    assert config.get_sync_offset() == 0.0
