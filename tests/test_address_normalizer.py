from urllib.parse import quote

import pytest

from address_normalizer import clean_address, extract_building_number, normalize


def test_province_abbreviation_expanded():
    assert normalize("경기 수원시 영통구") == "경기도 수원시 영통구"


@pytest.mark.parametrize("raw, expected", [
    ("강원 춘천시 중앙로 1", "강원도 춘천시 중앙로 1"),
    ("충북 청주시 상당구 상당로 82", "충청북도 청주시 상당구 상당로 82"),
    ("충남 천안시 동남구 버들로 40", "충청남도 천안시 동남구 버들로 40"),
    ("전북 전주시 완산구 효자로 225", "전라북도 전주시 완산구 효자로 225"),
    ("전남 무안군 삼향읍 오룡길 1", "전라남도 무안군 삼향읍 오룡길 1"),
    ("경북 안동시 풍천면 도청대로 455", "경상북도 안동시 풍천면 도청대로 455"),
    ("경남 창원시 의창구 중앙대로 300", "경상남도 창원시 의창구 중앙대로 300"),
    ("제주 제주시 문연로 6", "제주특별자치도 제주시 문연로 6"),
])
def test_all_province_abbreviations(raw, expected):
    assert normalize(raw) == expected


def test_full_province_name_kept():
    assert normalize("경기도 수원시 영통구") == "경기도 수원시 영통구"
    assert normalize("경북대학교 북문") == "경북대학교 북문"


def test_comma_remainder_dropped_and_building_number_extracted():
    cleaned = clean_address("서울시 강남구 역삼동 123, 456동 789호")
    assert cleaned.normalized == "서울시 강남구 역삼동 123"
    assert cleaned.building_number == "456"


@pytest.mark.parametrize("raw", [
    "서울시 중구 세종대로 110 101호",
    "서울시 중구 세종대로 110 101동 202호",
    "서울시 중구 세종대로 110 101동",
    "서울시 중구 세종대로 110 아파트",
    "서울시 중구 세종대로 110 APT",
    "서울시 중구 세종대로 110 오피스텔 1203호",
])
def test_trailing_unit_and_building_word_stripped(raw):
    assert normalize(raw) == "서울시 중구 세종대로 110"


def test_administrative_dong_with_digit_kept():
    assert normalize("서울특별시 강남구 역삼1동") == "서울특별시 강남구 역삼1동"


def test_whitespace_collapsed():
    assert normalize("  경기   수원시\t영통구  ") == "경기도 수원시 영통구"


def test_url_encoded_input_decoded():
    assert normalize(quote("경기 수원시 영통구 영통동 123")) == "경기도 수원시 영통구 영통동 123"


def test_glued_lot_number_separated():
    assert normalize("경기 수원시 영통구 영통동123") == "경기도 수원시 영통구 영통동 123"
    assert normalize("강원 춘천시 동면 산12-3") == "강원도 춘천시 동면 산12-3"


@pytest.mark.parametrize("raw", [None, float("nan"), "", "   "])
def test_blank_input_gives_empty_string(raw):
    assert normalize(raw) == ""


@pytest.mark.parametrize("raw", [
    "경기 수원시 영통구",
    "서울시 강남구 역삼동 123, 456동 789호",
    "서울시 중구 세종대로 110 101호",
    "경기 용인시 수지구 풍덕천로 10 아파트 101동",
    "경기 수원시 영통구 영통동123",
    quote("경기 수원시 영통구 영통동 123"),
    "서울특별시 강남구 역삼1동",
    "경기 101호",
])
def test_normalize_is_idempotent(raw):
    once = normalize(raw)
    assert normalize(once) == once


def test_building_number_only_from_comma_remainder():
    assert extract_building_number("서울시 강남구 역삼동 123 456동 789호") is None
    assert extract_building_number("서울시 강남구 역삼동 123, 456동") is None
    assert extract_building_number("서울시 강남구 역삼동 123, 래미안 102동 1503호") == "102"


@pytest.mark.parametrize("raw", [
    "서울시 중구 세종대로 110 %2541",
    quote(quote("경기 수원시 영통구 영통동 123")),
])
def test_double_encoded_input_fully_decoded(raw):
    once = normalize(raw)
    assert "%" not in once
    assert normalize(once) == once


def test_double_encoded_address_matches_plain():
    assert normalize(quote(quote("경기 수원시 영통구 영통동 123"))) == "경기도 수원시 영통구 영통동 123"
