# settings.py — 환경변수 기반 설정 + 로깅 초기화
# -*- coding: utf-8 -*-

import os
import logging
from dataclasses import dataclass


# =========================
# 상수
# =========================
VWORLD_ADDRESS_URL = "https://api.vworld.kr/req/address"
VWORLD_WMTS_URL = "https://api.vworld.kr/req/wmts/1.0.0/{key}/{layer}/{{z}}/{{y}}/{{x}}.{ext}"

DEFAULT_TIMEOUT_SEC = 5.0
DEFAULT_PACE_EVERY = 5        # N건마다
DEFAULT_PACE_SEC = 0.05       # 잠깐 쉼 (VWorld 과호출 방지)
HTTP_RETRIES = 0              # road → parcel 폴백 외 재시도 없음

# 엑셀 1행 = 헤더, 데이터 첫 행 = 2행
HEADER_ROW_OFFSET = 2
ADDRESS_COLUMNS = ("address", "주소")

# 지도 기본값 (경기도 용인시 부근)
MAP_CENTER_LAT, MAP_CENTER_LON = 37.2911, 127.0089
MAP_ZOOM = 11
MAP_MIN_ZOOM, MAP_MAX_ZOOM = 7, 19
FOCUS_ZOOM = 17

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if not raw:
        return float(default)
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning("환경변수 %s=%r 숫자 아님 → 기본값 %s 사용", name, raw, default)
        return float(default)


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env_str(name).lower()
    if raw in ("1", "true", "yes", "y", "on"):
        return True
    if raw in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Settings:
    vworld_api_key: str = ""
    vworld_map_key: str = ""
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    pace_every: int = DEFAULT_PACE_EVERY
    pace_sec: float = DEFAULT_PACE_SEC
    use_cache: bool = False
    log_level: str = "INFO"

    @property
    def has_api_key(self) -> bool:
        return bool(self.vworld_api_key)


def load_settings() -> Settings:
    """환경변수 → Settings. 타일 키(VWORLD_MAP_KEY)가 없으면 API 키를 같이 씀."""
    api_key = _env_str("VWORLD_API_KEY")
    return Settings(
        vworld_api_key=api_key,
        vworld_map_key=_env_str("VWORLD_MAP_KEY", api_key),
        timeout_sec=_env_float("VWORLD_TIMEOUT_SEC", DEFAULT_TIMEOUT_SEC),
        pace_every=max(0, _env_int("GEOCODE_PACE_EVERY", DEFAULT_PACE_EVERY)),
        pace_sec=max(0.0, _env_float("GEOCODE_PACE_SEC", DEFAULT_PACE_SEC)),
        use_cache=_env_bool("GEOCODE_CACHE", False),
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
