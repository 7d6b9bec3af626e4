from clinicqueue.display.config import DisplaySettings
from clinicqueue.kiosk.launcher import apply_args, parse_args, surface_url

SETTINGS = DisplaySettings(
    server_url="http://localhost:5000",
    civil_offset_minutes=330,
    voice_language="te",
    audio_player=("mpg123", "-q", "-"),
    host="127.0.0.1",
    port=8100,
    surfaces=("lobby", "assistant"),
    log_level="INFO",
)


def test_apply_args_overrides_only_given_options() -> None:
    args = parse_args(
        [
            "--server",
            "http://clinic.local:5000",
            "--surface",
            "reception",
            "--surface",
            "tracking",
            "--port",
            "9100",
            "--audio-player",
            "ffplay -nodisp -autoexit -",
            "--log-level",
            "debug",
        ]
    )

    settings = apply_args(SETTINGS, args)

    assert settings.server_url == "http://clinic.local:5000"
    assert settings.surfaces == ("reception", "tracking")
    assert settings.port == 9100
    assert settings.audio_player == ("ffplay", "-nodisp", "-autoexit", "-")
    assert settings.log_level == "DEBUG"
    assert settings.host == "127.0.0.1"
    assert settings.voice_language == "te"


def test_apply_args_without_options_keeps_settings() -> None:
    assert apply_args(SETTINGS, parse_args([])) == SETTINGS


def test_surface_url_points_at_surface_view() -> None:
    assert surface_url(SETTINGS, "lobby") == "http://127.0.0.1:8100/api/surfaces/lobby"
