#!/usr/bin/env python
"""엑셀/CSV 주소 목록 → 건수별 마커 지도(HTML) + 실패 목록(CSV).

Example:
  VWORLD_API_KEY=... python batch_map.py DATA/주소목록.xlsx --out outputs/address_map.html \
      --failed outputs/failed.csv --open
"""
import argparse
import logging
import sys
import webbrowser
from pathlib import Path

from marker_aggregator import SpreadsheetError, aggregate, failed_records_frame, read_address_rows
from marker_map import build_marker_map
from settings import configure_logging, load_settings
from vworld_geocoder import GeocodeResolver, MissingApiCredentialError, VWorldClient

logger = logging.getLogger("address_map.batch")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Geocode an address spreadsheet with VWorld and draw a marker map.")
    p.add_argument("input", type=Path, help="Input .xlsx/.xls/.csv path")
    p.add_argument("--out", type=Path, default=Path("address_map.html"), help="Output HTML map path")
    p.add_argument("--failed", type=Path, default=None, help="Write failed rows to this CSV")
    p.add_argument("--map-type", choices=["base", "satellite", "hybrid"], default="base")
    p.add_argument("--cache", action="store_true", help="Reuse lookups for identical normalized addresses")
    p.add_argument("--open", action="store_true", help="Open the map in a browser when done")
    return p.parse_args(argv)


def main(argv=None, settings=None, session=None):
    args = parse_args(argv)
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if not args.input.exists():
        logger.error("입력 파일 없음: %s", args.input)
        return 2
    if not settings.has_api_key:
        logger.error("VWORLD_API_KEY 환경변수가 비어있습니다.")
        return 3

    try:
        rows = read_address_rows(args.input)
    except SpreadsheetError as e:
        logger.error("%s", e)
        return 2

    client = VWorldClient(settings.vworld_api_key, timeout=settings.timeout_sec, session=session)
    cache = {} if (args.cache or settings.use_cache) else None
    resolver = GeocodeResolver(client, logger=logging.getLogger("address_map.geocode"), cache=cache)
    try:
        result = aggregate(rows, resolver, logger=logger,
                           pace_every=settings.pace_every, pace_seconds=settings.pace_sec)
    except MissingApiCredentialError as e:
        logger.error("API 키 오류로 중단: %s", e)
        return 3

    args.out.parent.mkdir(parents=True, exist_ok=True)
    m = build_marker_map(result.markers, vworld_key=settings.vworld_map_key, map_type=args.map_type)
    m.save(str(args.out))
    logger.info("지도 저장: %s", args.out)

    if args.failed is not None:
        args.failed.parent.mkdir(parents=True, exist_ok=True)
        failed_records_frame(result.failed).to_csv(args.failed, index=False, encoding="utf-8-sig")
        logger.info("실패 목록 저장: %s (%d건)", args.failed, len(result.failed))

    s = result.summary()
    print(f"[DONE] 총 {s.total_addresses}건 / 성공 {s.success_count}건 / 실패 {s.failed_count}건 → {args.out}")
    if args.open:
        webbrowser.open("file://" + str(args.out.resolve()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
