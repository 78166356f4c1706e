# marker_aggregator.py — 엑셀 주소 목록 일괄 지오코딩 → 좌표별 마커 집계
# -*- coding: utf-8 -*-

import asyncio
import io
import logging
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd
from xlrd import XLRDError

from address_normalizer import clean_address
from settings import ADDRESS_COLUMNS, DEFAULT_PACE_EVERY, DEFAULT_PACE_SEC, HEADER_ROW_OFFSET
from vworld_geocoder import FailureReason, GeocodeFailure, MissingApiCredentialError

logger = logging.getLogger(__name__)

class SpreadsheetError(Exception):
    pass

# =========================
# 타입
# =========================
@dataclass(frozen=True)
class AddressRow:
    original_address: str
    row_number: int

@dataclass
class Marker:
    latitude: float
    longitude: float
    contributing_addresses: list[str] = field(default_factory=list)
    is_apartment_complex: bool = False

    @property
    def occurrence_count(self) -> int:
        return len(self.contributing_addresses)

    @property
    def representative_address(self) -> str:
        return self.contributing_addresses[0] if self.contributing_addresses else ""

@dataclass(frozen=True)
class FailedAddressRecord:
    original_address: str
    reason_text: str
    source_row_number: int

@dataclass(frozen=True)
class BatchSummary:
    total_addresses: int
    success_count: int
    failed_addresses: list[FailedAddressRecord]

    @property
    def failed_count(self) -> int:
        return len(self.failed_addresses)

@dataclass
class BatchResult:
    markers: list[Marker]
    failed: list[FailedAddressRecord]
    total_rows: int

    def summary(self) -> BatchSummary:
        return BatchSummary(
            total_addresses=self.total_rows,
            success_count=sum(m.occurrence_count for m in self.markers),
            failed_addresses=list(self.failed),
        )

# =========================
# 집계
# =========================
class _BatchCollector:
    """행 단위 결과 → (위도, 경도, 정규화주소) 기준 마커 + 실패 목록."""

    def __init__(self, total: int, log: logging.Logger):
        self.total = total
        self.log = log
        self.groups: dict[tuple[float, float, str], Marker] = {}
        self.failed: list[FailedAddressRecord] = []

    def add_empty(self, row: AddressRow, original: str):
        self.failed.append(FailedAddressRecord(original, FailureReason.EMPTY_INPUT.text, row.row_number))

    def add(self, row: AddressRow, original: str, normalized: str, outcome):
        if isinstance(outcome, GeocodeFailure):
            # API 키 누락은 어떤 행도 성공할 수 없으므로 즉시 중단
            if outcome.reason is FailureReason.MISSING_API_CREDENTIAL:
                raise MissingApiCredentialError(outcome.message or outcome.reason_text)
            self.log.warning("[%d행] 변환 실패(%s): %s", row.row_number, outcome.reason_text, original)
            self.failed.append(FailedAddressRecord(original, outcome.reason_text, row.row_number))
            return
        key = (outcome.latitude, outcome.longitude, normalized)
        marker = self.groups.get(key)
        if marker is None:
            marker = self.groups[key] = Marker(outcome.latitude, outcome.longitude)
        marker.contributing_addresses.append(original)
        if outcome.building_number:
            marker.is_apartment_complex = True

    def result(self) -> BatchResult:
        result = BatchResult(markers=list(self.groups.values()), failed=self.failed, total_rows=self.total)
        s = result.summary()
        self.log.info("일괄 지오코딩 완료: 총 %d건 / 성공 %d건 / 실패 %d건 / 마커 %d개",
                      s.total_addresses, s.success_count, s.failed_count, len(result.markers))
        return result

def _original_text(row: AddressRow) -> str:
    return "" if row.original_address is None else str(row.original_address)

def _should_pace(i: int, pace_every: int, pace_seconds: float) -> bool:
    return bool(pace_every and pace_seconds and i % pace_every == 0)

def aggregate(rows, resolver, *, logger: logging.Logger | None = None, progress=None,
              pace_every: int = DEFAULT_PACE_EVERY, pace_seconds: float = DEFAULT_PACE_SEC,
              sleep=time.sleep) -> BatchResult:
    """
    행 순서대로 정제 → 지오코딩 → (위도, 경도, 정규화주소) 기준 그룹핑.
    - 빈 주소/실패 행은 FailedAddressRecord 로 모으고 계속 진행
    - API 키 누락은 즉시 MissingApiCredentialError
    - progress(done, total) 콜백, pace_every 건마다 pace_seconds 만큼 쉼
    """
    log = logger or logging.getLogger(__name__)
    rows = list(rows)
    collector = _BatchCollector(len(rows), log)

    log.info("일괄 지오코딩 시작: %d건", len(rows))
    for i, row in enumerate(rows, start=1):
        original = _original_text(row)
        if not original.strip():
            collector.add_empty(row, original)
        else:
            cleaned = clean_address(original)
            outcome = resolver.resolve(cleaned.normalized, cleaned.building_number)
            collector.add(row, original, cleaned.normalized, outcome)

        if progress is not None:
            progress(i, len(rows))
        if _should_pace(i, pace_every, pace_seconds):
            sleep(pace_seconds)
    return collector.result()

async def aggregate_async(rows, resolver, *, logger: logging.Logger | None = None, progress=None,
                          pace_every: int = DEFAULT_PACE_EVERY,
                          pace_seconds: float = DEFAULT_PACE_SEC) -> BatchResult:
    """aggregate 와 같은 결과. 웹 앱용: 조회는 작업 스레드에서, 쉬는 동안 이벤트 루프 양보."""
    log = logger or logging.getLogger(__name__)
    rows = list(rows)
    collector = _BatchCollector(len(rows), log)

    log.info("일괄 지오코딩 시작(async): %d건", len(rows))
    for i, row in enumerate(rows, start=1):
        original = _original_text(row)
        if not original.strip():
            collector.add_empty(row, original)
        else:
            cleaned = clean_address(original)
            outcome = await asyncio.to_thread(resolver.resolve, cleaned.normalized, cleaned.building_number)
            collector.add(row, original, cleaned.normalized, outcome)

        if progress is not None:
            progress(i, len(rows))
        if _should_pace(i, pace_every, pace_seconds):
            await asyncio.sleep(pace_seconds)
        else:
            await asyncio.sleep(0)
    return collector.result()

# =========================
# 엑셀/CSV 입력
# =========================
def _read_csv_smart(source, encodings=("utf-8-sig", "cp949", "euc-kr")) -> pd.DataFrame:
    raw = source.read() if hasattr(source, "read") else Path(source).read_bytes()
    last = None
    for enc in encodings:
        try:
            return pd.read_csv(io.BytesIO(raw), encoding=enc, dtype=object)
        except UnicodeDecodeError as e:
            last = e
    raise SpreadsheetError(f"CSV 인코딩 판별 실패: {last}")

def _pick_address_column(df: pd.DataFrame):
    lower_map = {str(c).strip().lower(): c for c in df.columns}
    for name in ADDRESS_COLUMNS:
        if name.lower() in lower_map:
            return lower_map[name.lower()]
    return df.columns[0]

def read_address_rows(source, filename: str | None = None) -> list[AddressRow]:
    """업로드 파일(첫 시트) → AddressRow 목록. 행 번호는 엑셀 화면 기준(헤더=1행)."""
    name = str(filename or (source if isinstance(source, (str, Path)) else "")).lower()
    try:
        if name.endswith(".csv"):
            df = _read_csv_smart(source)
        else:
            df = pd.read_excel(source, sheet_name=0, dtype=object)
    except (ValueError, OSError, ImportError, KeyError, zipfile.BadZipFile, XLRDError) as e:
        raise SpreadsheetError(f"파일을 읽을 수 없습니다: {e}") from e

    if df.columns.empty:
        return []
    col = _pick_address_column(df)
    logger.info("주소 컬럼: %r (%d행)", col, len(df))

    rows = []
    for idx, value in enumerate(df[col].tolist()):
        text = "" if value is None or pd.isna(value) else str(value).strip()
        rows.append(AddressRow(text, idx + HEADER_ROW_OFFSET))
    return rows

# =========================
# 결과 표
# =========================
def failed_records_frame(failed) -> pd.DataFrame:
    return pd.DataFrame(
        [(f.source_row_number, f.original_address, f.reason_text) for f in failed],
        columns=["행", "주소", "실패 사유"],
    )

def markers_frame(markers) -> pd.DataFrame:
    return pd.DataFrame(
        [(m.latitude, m.longitude, m.representative_address, m.occurrence_count, m.is_apartment_complex)
         for m in markers],
        columns=["위도", "경도", "대표 주소", "건수", "아파트 단지"],
    )
