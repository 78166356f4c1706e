# vworld_geocoder.py — VWorld 주소 API 호출 + 도로명→지번 폴백 지오코딩
# -*- coding: utf-8 -*-
"""
VWorld 주소 좌표변환(getCoord) 연동.

  VWorldClient.lookup(address, kind)  : HTTP 호출 → JSON(dict)
  parse_response(payload)             : JSON → ServiceResponse(status/point/structure)
  GeocodeResolver.resolve(addr, bno)  : road 1차 → 실패 시 parcel 2차 → GeocodeResult | GeocodeFailure

API 키는 클라이언트 생성 시점에 주입합니다(호출 시점에 환경변수를 읽지 않음).
행정동은 VWorld 2.0 응답의 refined.structure.level4A 를 사용합니다.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from address_normalizer import clean_address
from settings import DEFAULT_TIMEOUT_SEC, HTTP_RETRIES, VWORLD_ADDRESS_URL

logger = logging.getLogger(__name__)


# =========================
# 예외
# =========================
class GeocodeError(Exception):
    pass


class MissingApiCredentialError(GeocodeError):
    pass


class TransportError(GeocodeError):
    pass


class MalformedResponseError(GeocodeError):
    pass


# =========================
# 타입
# =========================
class AddressKind(str, Enum):
    ROAD = "road"
    PARCEL = "parcel"


class FailureReason(Enum):
    # value = 사용자에게 보여줄 사유 문구
    MISSING_API_CREDENTIAL = "missing API credential"
    NO_ADDRESS_MATCH = "no address match"
    TRANSPORT_ERROR = "transport error"
    MALFORMED_RESPONSE = "malformed response"
    EMPTY_INPUT = "empty address"

    @property
    def text(self) -> str:
        return self.value


class ServiceStatus(str, Enum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ServiceResponse:
    status: ServiceStatus
    point: tuple[float, float] | None = None    # (x=경도, y=위도)
    structure: dict = field(default_factory=dict)
    refined_text: str | None = None
    error_code: str | None = None
    error_text: str | None = None


@dataclass(frozen=True)
class GeocodeResult:
    latitude: float
    longitude: float
    kind: AddressKind
    administrative_dong: str | None = None
    building_number: str | None = None
    refined_address: str | None = None


@dataclass(frozen=True)
class GeocodeFailure:
    reason: FailureReason
    message: str = ""
    address: str = ""

    @property
    def reason_text(self) -> str:
        return self.reason.text


# =========================
# 응답 파싱
# =========================
def _as_float(v, what: str) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        raise MalformedResponseError(f"{what} 좌표를 숫자로 읽을 수 없습니다: {v!r}") from None


def parse_response(payload) -> ServiceResponse:
    """VWorld getCoord JSON → ServiceResponse. 스키마 위반은 MalformedResponseError."""
    if not isinstance(payload, dict) or not isinstance(payload.get("response"), dict):
        raise MalformedResponseError("'response' 객체가 없습니다.")
    body = payload["response"]

    try:
        status = ServiceStatus(str(body.get("status", "")).upper())
    except ValueError:
        raise MalformedResponseError(f"알 수 없는 status: {body.get('status')!r}") from None

    if status is ServiceStatus.ERROR:
        err = body.get("error") or {}
        if not isinstance(err, dict):
            err = {"text": str(err)}
        return ServiceResponse(status, error_code=err.get("code"), error_text=err.get("text"))

    if status is ServiceStatus.NOT_FOUND:
        return ServiceResponse(status)

    result = body.get("result")
    point = result.get("point") if isinstance(result, dict) else None
    if not isinstance(point, dict) or "x" not in point or "y" not in point:
        raise MalformedResponseError("status=OK 인데 result.point(x, y)가 없습니다.")
    x = _as_float(point["x"], "x")
    y = _as_float(point["y"], "y")

    refined = body.get("refined") if isinstance(body.get("refined"), dict) else {}
    structure = refined.get("structure") if isinstance(refined.get("structure"), dict) else {}
    return ServiceResponse(status, point=(x, y), structure=structure, refined_text=refined.get("text"))


# =========================
# HTTP 클라이언트
# =========================
def make_session(retries: int = HTTP_RETRIES) -> requests.Session:
    session = requests.Session()
    retry = Retry(total=retries, connect=retries, read=retries, backoff_factor=0.6,
                  status_forcelist=[429, 500, 502, 503, 504], allowed_methods=["GET"], raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class VWorldClient:
    """VWorld 주소 API lookup capability."""

    def __init__(self, api_key: str, *, timeout: float = DEFAULT_TIMEOUT_SEC,
                 session: requests.Session | None = None, url: str = VWORLD_ADDRESS_URL):
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.session = session if session is not None else make_session()
        self.url = url

    def build_params(self, address: str, kind: AddressKind) -> dict:
        return {
            "service": "address",
            "request": "getCoord",
            "version": "2.0",
            "crs": "epsg:4326",
            "address": address,
            "refine": "true",
            "simple": "false",
            "format": "json",
            "errorFormat": "json",
            "type": AddressKind(kind).value,
            "key": self.api_key,
        }

    def lookup(self, address: str, kind: AddressKind) -> dict:
        if not self.api_key:
            raise MissingApiCredentialError("VWORLD_API_KEY가 설정되지 않았습니다.")
        params = self.build_params(address, kind)
        try:
            resp = self.session.get(self.url, params=params, headers={"Accept": "application/json"},
                                    timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"timeout({self.timeout}s): {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(str(e)) from e

        if not 200 <= resp.status_code < 300:
            raise TransportError(f"{resp.status_code} {resp.reason}")
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"JSON 아님: {resp.text[:200]}") from e


# =========================
# 지오코딩 (road → parcel)
# =========================
def _is_key_error(resp: ServiceResponse) -> bool:
    return "KEY" in str(resp.error_code or "").upper()


class GeocodeResolver:
    """정규화 주소 → 좌표. 도로명(road) 실패 시 지번(parcel) 한 번만 더 시도."""

    def __init__(self, client, *, parser=parse_response, logger: logging.Logger | None = None,
                 cache: dict | None = None):
        self.client = client
        self.parser = parser
        self.log = logger or logging.getLogger(__name__)
        self.cache = cache

    def _attempt(self, address: str, kind: AddressKind) -> GeocodeResult | GeocodeFailure:
        try:
            payload = self.client.lookup(address, kind)
            parsed = self.parser(payload)
        except MissingApiCredentialError as e:
            return GeocodeFailure(FailureReason.MISSING_API_CREDENTIAL, str(e), address)
        except TransportError as e:
            self.log.warning("[%s] 통신 오류: %s | %s", kind.value, address, e)
            return GeocodeFailure(FailureReason.TRANSPORT_ERROR, str(e), address)
        except MalformedResponseError as e:
            self.log.warning("[%s] 응답 형식 오류: %s | %s", kind.value, address, e)
            return GeocodeFailure(FailureReason.MALFORMED_RESPONSE, str(e), address)

        if parsed.status is ServiceStatus.OK:
            x, y = parsed.point
            return GeocodeResult(
                latitude=y,
                longitude=x,
                kind=kind,
                administrative_dong=parsed.structure.get("level4A") or None,
                refined_address=parsed.refined_text,
            )
        if parsed.status is ServiceStatus.ERROR:
            self.log.warning("[%s] VWorld ERROR %s: %s", kind.value, parsed.error_code, parsed.error_text)
            if _is_key_error(parsed):
                return GeocodeFailure(FailureReason.MISSING_API_CREDENTIAL,
                                      f"{parsed.error_code}: {parsed.error_text}", address)
            return GeocodeFailure(FailureReason.NO_ADDRESS_MATCH, parsed.error_text or "ERROR", address)
        return GeocodeFailure(FailureReason.NO_ADDRESS_MATCH, "NOT_FOUND", address)

    def _lookup(self, address: str) -> GeocodeResult | GeocodeFailure:
        road = self._attempt(address, AddressKind.ROAD)
        if isinstance(road, GeocodeResult):
            return road
        if road.reason is FailureReason.MISSING_API_CREDENTIAL:
            return road

        self.log.info("도로명 주소 실패(%s) → 지번 주소로 재시도: %s", road.reason.text, address)
        parcel = self._attempt(address, AddressKind.PARCEL)
        if isinstance(parcel, GeocodeResult):
            return parcel

        reasons = (road.reason, parcel.reason)
        if FailureReason.MISSING_API_CREDENTIAL in reasons:
            reason = FailureReason.MISSING_API_CREDENTIAL
        elif FailureReason.NO_ADDRESS_MATCH in reasons:
            reason = FailureReason.NO_ADDRESS_MATCH
        else:
            reason = parcel.reason
        return GeocodeFailure(reason, f"road: {road.message} / parcel: {parcel.message}", address)

    def resolve(self, normalized: str, building_number: str | None = None) -> GeocodeResult | GeocodeFailure:
        if not normalized:
            return GeocodeFailure(FailureReason.EMPTY_INPUT, "", normalized)

        if self.cache is not None and normalized in self.cache:
            outcome = self.cache[normalized]
        else:
            outcome = self._lookup(normalized)
            cacheable = isinstance(outcome, GeocodeResult) or outcome.reason is FailureReason.NO_ADDRESS_MATCH
            if self.cache is not None and cacheable:
                self.cache[normalized] = outcome

        if isinstance(outcome, GeocodeFailure):
            self.log.info("주소를 찾을 수 없습니다(%s): %s", outcome.reason.text, normalized)
            return outcome
        if building_number:
            outcome = replace(outcome, building_number=f"{building_number}동")
        self.log.debug("지오코딩 성공[%s]: %s → (%.6f, %.6f)", outcome.kind.value, normalized,
                       outcome.latitude, outcome.longitude)
        return outcome


def geocode_address(raw, resolver: GeocodeResolver) -> GeocodeResult | GeocodeFailure:
    """단건 검색용: 원본 주소 정제 후 resolve."""
    cleaned = clean_address(raw)
    if not cleaned.normalized:
        return GeocodeFailure(FailureReason.EMPTY_INPUT, "", "")
    return resolver.resolve(cleaned.normalized, cleaned.building_number)
