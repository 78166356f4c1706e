# address_normalizer.py — 주소 정제(VWorld 요청 전 단계)
# -*- coding: utf-8 -*-
"""
사용자 입력/엑셀 주소 문자열 → VWorld 지오코딩에 넣을 정규화 주소.

처리 순서:
  1) URL 인코딩(%XX) 흔적이 있으면 디코딩
  2) 첫 쉼표 앞부분만 본문으로 사용 (뒤는 '101동 202호' 같은 동/호수 정보)
  3) 공백 정리
  4) 시도 약칭 → 정식 명칭 (문자열 맨 앞만)
  5) 끝의 동/호수, 건물유형 단어(아파트/상가/빌딩 등) 제거
  6) 한글에 붙은 번지 띄우기 ('영통동123' → '영통동 123')

동 번호(아파트 동)는 본문과 별개로 쉼표 뒷부분에서만 뽑습니다(extract_building_number).
"""

import math
import re
from dataclasses import dataclass
from urllib.parse import unquote


PROVINCE_ABBREVIATIONS = {
    "경기": "경기도",
    "강원": "강원도",
    "충북": "충청북도",
    "충남": "충청남도",
    "전북": "전라북도",
    "전남": "전라남도",
    "경북": "경상북도",
    "경남": "경상남도",
    "제주": "제주특별자치도",
}

BUILDING_TYPE_WORDS = ("아파트", "APT", "상가", "빌딩", "오피스텔")

_re_percent = re.compile(r"%[0-9A-Fa-f]{2}")
_re_space = re.compile(r"\s+")
_re_province = re.compile(r"^(%s)\s" % "|".join(PROVINCE_ABBREVIATIONS))

# 숫자는 독립 토큰이어야 함 → '역삼1동' 같은 행정동명은 보존
_re_unit_tail = (
    re.compile(r"\s+\d+\s*동\s*\d+\s*호$"),
    re.compile(r"\s+\d+\s*동$"),
    re.compile(r"\s+\d+\s*호$"),
)
_re_building_word = re.compile(r"\s*(%s)$" % "|".join(BUILDING_TYPE_WORDS), re.IGNORECASE)

# 산번지('산12-3')는 그대로 둠
_re_glued_lot = re.compile(r"(?<=[가-힣])(?<!산)(\d+(?:-\d+)?)$")

_re_building_unit = re.compile(r"(\d+)\s*동\s*(\d+)\s*호")


@dataclass(frozen=True)
class CleanedAddress:
    normalized: str
    building_number: str | None = None


def _as_text(raw) -> str:
    if raw is None:
        return ""
    if isinstance(raw, float) and math.isnan(raw):
        return ""
    return str(raw).replace("\ufeff", "")


def _decode(s: str) -> str:
    # 이중 인코딩('%2541')도 끝까지 풀어야 재정규화 시 결과가 같음
    while _re_percent.search(s):
        decoded = unquote(s)
        if decoded == s:
            break
        s = decoded
    return s


def _expand_province(s: str) -> str:
    m = _re_province.match(s)
    if not m:
        return s
    return PROVINCE_ABBREVIATIONS[m.group(1)] + " " + s[m.end():]


def _strip_tail(s: str) -> str:
    """끝의 동/호수 → 건물유형 단어 순으로 더 이상 변화가 없을 때까지 제거."""
    while True:
        before = s
        for pat in _re_unit_tail:
            s = pat.sub("", s).strip()
        s = _re_building_word.sub("", s).strip()
        if s == before:
            return s


def normalize(raw) -> str:
    """원본 주소 → 정규화 주소. 예외 없이 최선의 문자열을 돌려줍니다."""
    s = _decode(_as_text(raw))
    s = s.split(",", 1)[0]
    s = _re_space.sub(" ", s).strip()
    s = _expand_province(s)
    s = _strip_tail(s)
    s = _re_glued_lot.sub(r" \1", s)
    return s


def extract_building_number(raw) -> str | None:
    """쉼표 뒷부분의 '456동 789호'에서 동 번호('456')만 추출. 없으면 None."""
    parts = _decode(_as_text(raw)).split(",", 1)
    if len(parts) < 2:
        return None
    m = _re_building_unit.search(parts[1])
    return m.group(1) if m else None


def clean_address(raw) -> CleanedAddress:
    return CleanedAddress(normalize(raw), extract_building_number(raw))
