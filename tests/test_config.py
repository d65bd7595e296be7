from autozoom.config import CameraConfig, Settings


def test_camera_defaults():
    config = CameraConfig()
    assert (config.zoom_idle_level, config.zoom_active_level, config.click_zoom_level) == (1.0, 1.5, 2.0)
    assert config.idle_timeout_ms == 2000
    assert config.tick_interval == 1 / 60


def test_settings_from_env():
    settings = Settings.from_env({
        "AUTOZOOM_PORT": "8080",
        "AUTOZOOM_LOG_LEVEL": "debug",
        "AUTOZOOM_GLOBAL_INPUT": "0",
        "AUTOZOOM_CORS_ORIGINS": "http://a, http://b,",
    })
    assert settings.port == 8080
    assert settings.host == "0.0.0.0"
    assert settings.log_level == "DEBUG"
    assert settings.global_input is False
    assert settings.cors_origins == ["http://a", "http://b"]


def test_settings_defaults():
    settings = Settings.from_env({})
    assert settings.ffmpeg == "ffmpeg"
    assert settings.global_input is True
    assert "http://localhost:5173" in settings.cors_origins
