from settings import DEFAULT_PACE_EVERY, DEFAULT_TIMEOUT_SEC, load_settings

ENV_NAMES = ("VWORLD_API_KEY", "VWORLD_MAP_KEY", "VWORLD_TIMEOUT_SEC", "GEOCODE_PACE_EVERY",
             "GEOCODE_PACE_SEC", "GEOCODE_CACHE", "LOG_LEVEL")


def _clear(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_env(monkeypatch):
    _clear(monkeypatch)
    s = load_settings()
    assert s.vworld_api_key == "" and not s.has_api_key
    assert s.timeout_sec == DEFAULT_TIMEOUT_SEC
    assert s.pace_every == DEFAULT_PACE_EVERY
    assert s.use_cache is False
    assert s.log_level == "INFO"


def test_map_key_falls_back_to_api_key(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("VWORLD_API_KEY", " abc ")
    s = load_settings()
    assert s.vworld_api_key == "abc"
    assert s.vworld_map_key == "abc"

    monkeypatch.setenv("VWORLD_MAP_KEY", "tiles")
    assert load_settings().vworld_map_key == "tiles"


def test_numeric_and_flag_env(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("VWORLD_TIMEOUT_SEC", "2.5")
    monkeypatch.setenv("GEOCODE_PACE_EVERY", "10")
    monkeypatch.setenv("GEOCODE_CACHE", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    s = load_settings()
    assert (s.timeout_sec, s.pace_every, s.use_cache, s.log_level) == (2.5, 10, True, "DEBUG")


def test_bad_number_uses_default(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("VWORLD_TIMEOUT_SEC", "five")
    assert load_settings().timeout_sec == DEFAULT_TIMEOUT_SEC
