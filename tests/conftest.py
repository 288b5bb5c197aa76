import pytest

OSU_CHART = """osu file format v14

[General]
AudioFilename: audio.mp3
PreviewTime: 500
Mode: 3

[Metadata]
Title:Engine Song
Artist:Engine Artist
Creator:Engine Mapper
Version:Normal

[Difficulty]
CircleSize:4

[TimingPoints]
0,500,4,1,0,100,1,0

[HitObjects]
64,192,1000,1,0,0:0:0:0:
192,192,1500,128,0,2000:0:0:0:0:
448,192,3000,1,0,0:0:0:0:
"""


@pytest.fixture
def osu_chart_text():
    return OSU_CHART


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests away from any user config file and environment overrides."""
    for name in (
        "RHYTHMCONV_CONFIG_PATH",
        "RHYTHMCONV_WEB_HOST",
        "RHYTHMCONV_WEB_PORT",
        "RHYTHMCONV_DEFAULT_CREATOR",
        "RHYTHMCONV_SM_SAMPLE_LENGTH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("config._default_config_candidates", lambda: [tmp_path / "missing_config.json"])
    import config

    config.get_config.cache_clear()
    yield
    config.get_config.cache_clear()
