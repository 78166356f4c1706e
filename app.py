# app.py — 주소 지도 시각화 (Python Shiny)
# 단건 주소 검색 + 엑셀 업로드 일괄 변환 → VWorld 지도에 건수별 원형 마커

import asyncio
import io
import logging
import traceback
from datetime import datetime

import pandas as pd
from shiny import App, reactive, render, ui

from marker_aggregator import SpreadsheetError, aggregate_async, failed_records_frame, read_address_rows
from marker_map import build_marker_map
from settings import configure_logging, load_settings
from vworld_geocoder import (
    FailureReason, GeocodeFailure, GeocodeResolver, MissingApiCredentialError, VWorldClient, geocode_address,
)

# =========================
# 설정 / 지오코더
# =========================
SETTINGS = load_settings()
configure_logging(SETTINGS.log_level)
logger = logging.getLogger("address_map.app")

if not SETTINGS.has_api_key:
    logger.warning("VWORLD_API_KEY 환경변수가 비어있습니다. 주소 변환이 동작하지 않습니다.")


def make_resolver() -> GeocodeResolver:
    client = VWorldClient(SETTINGS.vworld_api_key, timeout=SETTINGS.timeout_sec)
    cache = {} if SETTINGS.use_cache else None
    return GeocodeResolver(client, logger=logging.getLogger("address_map.geocode"), cache=cache)


def search_message(raw: str, outcome):
    """단건 검색 결과 → (안내 문구, 지도 포커스 (lat, lon, label) 또는 None)"""
    if isinstance(outcome, GeocodeFailure):
        if outcome.reason is FailureReason.MISSING_API_CREDENTIAL:
            return "API 키가 설정되지 않았습니다.", None
        if outcome.reason is FailureReason.EMPTY_INPUT:
            return "주소를 입력하세요.", None
        return f"주소를 찾을 수 없습니다. ({outcome.reason_text})", None

    label = (raw or "").strip()
    if outcome.building_number:
        label = f"{label} ({outcome.building_number})"
    dong = f" · {outcome.administrative_dong}" if outcome.administrative_dong else ""
    msg = f"{outcome.latitude:.6f}, {outcome.longitude:.6f}{dong}"
    return msg, (outcome.latitude, outcome.longitude, label)


# =========================
# UI
# =========================
app_ui = ui.page_sidebar(
    ui.sidebar(
        ui.h4("주소 검색"),
        ui.input_text("address", None, placeholder="주소를 입력하세요 (예: 경기도 수원시 영통구 영통동)"),
        ui.input_action_button("search", "검색", class_="btn-primary"),
        ui.output_text("search_text"),
        ui.hr(),
        ui.h4("엑셀 업로드"),
        ui.input_file("upload", None, accept=[".xlsx", ".xls", ".csv"], button_label="엑셀 파일 업로드",
                      placeholder="선택된 파일 없음"),
        ui.tags.small("* 첫 번째 시트의 'address' 또는 '주소' 열(없으면 첫 열)을 읽습니다."),
        ui.hr(),
        ui.input_radio_buttons(
            "map_type", "지도 종류",
            choices={"base": "기본", "satellite": "위성", "hybrid": "하이브리드"},
            selected="base", inline=True,
        ),
        ui.input_action_button("clear", "마커 지우기", class_="btn-outline-secondary btn-sm"),
        width=360,
    ),
    ui.row(
        ui.column(12, ui.card(ui.card_header("처리 결과"), ui.output_text("summary_text"))),
    ),
    ui.card(ui.card_header("지도"), ui.output_ui("map_ui")),
    ui.card(
        ui.card_header(
            ui.div(
                "변환 실패 주소",
                ui.download_button("dl_failed", "CSV 다운로드", class_="btn btn-outline-secondary btn-sm"),
                style="display:flex; justify-content:space-between; align-items:center;",
            )
        ),
        ui.output_table("failed_table"),
    ),
    title="주소 지도 시각화",
    fillable=False,
)


# =========================
# 서버 로직
# =========================
def server(input, output, session):
    resolver = make_resolver()

    markers = reactive.value([])
    failed = reactive.value([])
    summary = reactive.value(None)
    focus = reactive.value(None)
    search_msg = reactive.value("")
    batch_error = reactive.value("")

    # --- 단건 검색 ---
    @reactive.effect
    @reactive.event(input.search)
    async def _search():
        raw = input.address()
        # requests 호출은 작업 스레드에서 (다른 세션 이벤트 루프 막지 않게)
        outcome = await asyncio.to_thread(geocode_address, raw, resolver)
        msg, pin = search_message(raw, outcome)
        search_msg.set(msg)
        if pin is not None:
            focus.set(pin)

    # --- 엑셀 업로드 → 일괄 변환 ---
    @reactive.effect
    @reactive.event(input.upload)
    async def _upload():
        files = input.upload()
        if not files:
            return
        f = files[0]
        batch_error.set("")
        try:
            rows = read_address_rows(f["datapath"], filename=f["name"])
            with ui.Progress(min=0, max=max(1, len(rows))) as p:
                p.set(0, message="주소 변환 중...")

                def _progress(done, total):
                    p.set(done, message="주소 변환 중...", detail=f"{done}/{total}")

                result = await aggregate_async(
                    rows, resolver,
                    logger=logging.getLogger("address_map.batch"),
                    progress=_progress,
                    pace_every=SETTINGS.pace_every,
                    pace_seconds=SETTINGS.pace_sec,
                )
        except MissingApiCredentialError:
            batch_error.set("API 키가 설정되지 않아 주소를 변환할 수 없습니다.")
            ui.notification_show("VWORLD_API_KEY가 설정되지 않았습니다.", type="error")
            return
        except SpreadsheetError as e:
            batch_error.set(str(e))
            ui.notification_show("파일을 읽는 중 오류가 발생했습니다.", type="error")
            return

        markers.set(result.markers)
        failed.set(result.failed)
        summary.set(result.summary())
        focus.set(None)
        if not result.markers:
            ui.notification_show("주소를 좌표로 변환하는데 실패했습니다. 주소 형식을 확인해주세요.", type="warning")
        elif result.failed:
            ui.notification_show(f"일부 주소({len(result.failed)}개)를 변환하지 못했습니다.", type="warning")

    @reactive.effect
    @reactive.event(input.clear)
    def _clear():
        markers.set([])
        failed.set([])
        summary.set(None)
        focus.set(None)
        search_msg.set("")
        batch_error.set("")

    # --- 출력부 ---
    @output
    @render.text
    def search_text():
        return search_msg.get()

    @output
    @render.text
    def summary_text():
        if batch_error.get():
            return batch_error.get()
        s = summary.get()
        if s is None:
            return "엑셀 파일을 업로드하면 처리 결과가 표시됩니다."
        return (f"총 {s.total_addresses:,}건 | 성공 {s.success_count:,}건 | 실패 {s.failed_count:,}건 | "
                f"마커 {len(markers.get()):,}개")

    @output
    @render.ui
    def map_ui():
        try:
            m = build_marker_map(markers.get(), vworld_key=SETTINGS.vworld_map_key,
                                 map_type=input.map_type(), focus=focus.get())
        except Exception:
            err = traceback.format_exc()
            logger.error("지도 생성 실패:\n%s", err)
            return ui.pre(err)
        return ui.div(
            ui.HTML(m._repr_html_()),
            style="height:72vh; min-height:520px; border-radius:8px; overflow:hidden; position:relative;",
        )

    @output
    @render.table
    def failed_table():
        df = failed_records_frame(failed.get())
        if not len(df):
            return pd.DataFrame({"안내": ["변환 실패 주소가 없습니다."]})
        return df

    @render.download(filename=lambda: f"failed_addresses_{datetime.now().strftime('%Y%m%d_%H%M')}.csv")
    def dl_failed():
        buf = io.BytesIO()
        failed_records_frame(failed.get()).to_csv(buf, index=False, encoding="utf-8-sig")
        buf.seek(0)
        return buf


app = App(app_ui, server)
