from datetime import timedelta

from clinicqueue.display.config import load_settings


def test_load_settings_reads_expected_env(monkeypatch) -> None:
    monkeypatch.setenv("CLINICQUEUE_SERVER_URL", "https://queue.example.org/")
    monkeypatch.setenv("CLINICQUEUE_CIVIL_OFFSET_MINUTES", "480")
    monkeypatch.setenv("CLINICQUEUE_VOICE_LANGUAGE", "en")
    monkeypatch.setenv("CLINICQUEUE_AUDIO_PLAYER", "ffplay -nodisp -autoexit -")
    monkeypatch.setenv("CLINICQUEUE_HOST", "0.0.0.0")
    monkeypatch.setenv("CLINICQUEUE_PORT", "9000")
    monkeypatch.setenv("CLINICQUEUE_SURFACES", "Lobby, tracking,")
    monkeypatch.setenv("CLINICQUEUE_LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.server_url == "https://queue.example.org/"
    assert settings.civil_offset == timedelta(hours=8)
    assert settings.voice_language == "en"
    assert settings.audio_player == ("ffplay", "-nodisp", "-autoexit", "-")
    assert settings.host == "0.0.0.0"
    assert settings.port == 9000
    assert settings.surfaces == ("lobby", "tracking")
    assert settings.log_level == "DEBUG"


def test_load_settings_applies_defaults(monkeypatch) -> None:
    for name in (
        "CLINICQUEUE_SERVER_URL",
        "CLINICQUEUE_CIVIL_OFFSET_MINUTES",
        "CLINICQUEUE_VOICE_LANGUAGE",
        "CLINICQUEUE_AUDIO_PLAYER",
        "CLINICQUEUE_HOST",
        "CLINICQUEUE_PORT",
        "CLINICQUEUE_SURFACES",
        "CLINICQUEUE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.server_url == "http://localhost:5000"
    assert settings.civil_offset == timedelta(hours=5, minutes=30)
    assert settings.voice_language == "te"
    assert settings.audio_player == ("mpg123", "-q", "-")
    assert settings.host == "127.0.0.1"
    assert settings.port == 8100
    assert settings.surfaces == ("lobby", "assistant")
    assert settings.log_level == "INFO"
