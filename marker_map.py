# marker_map.py — 마커 목록 → Folium 지도 (VWorld 배경)
# -*- coding: utf-8 -*-

import math
from html import escape

import folium
from branca.element import Element
from folium.plugins import MiniMap

from settings import (
    FOCUS_ZOOM, MAP_CENTER_LAT, MAP_CENTER_LON, MAP_MAX_ZOOM, MAP_MIN_ZOOM, MAP_ZOOM, VWORLD_WMTS_URL,
)

BASE_RADIUS = 3
MAX_RADIUS = 30
LABEL_MIN_COUNT = 10

FILL_COLOR = "#2563eb"
LINE_COLOR = "#1d4ed8"

# map_type → (레이어명, VWorld 레이어, 확장자)
VWORLD_LAYERS = {
    "base": ("기본 (VWorld)", "Base", "png"),
    "satellite": ("위성 (VWorld)", "Satellite", "jpeg"),
    "hybrid": ("하이브리드 (VWorld)", "Hybrid", "png"),
}


def marker_radius(count: int) -> float:
    # 원 면적 ∝ 건수 → 반지름 ∝ √건수
    return min(BASE_RADIUS * math.sqrt(max(1, int(count))), MAX_RADIUS)


# =========================
# 팝업 HTML
# =========================
def build_popup_html_str(marker) -> str:
    rows_html = "".join(
        f'<div style="margin:0;color:#4b5563;">{escape(str(a))}</div>' for a in marker.contributing_addresses
    )
    tag = ' <span style="color:#6b7280;">(아파트 단지)</span>' if marker.is_apartment_complex else ""
    return f"""
    <div style="font-size:13px; line-height:1.5; min-width:300px; white-space: normal; word-break: keep-all;">
        <div style="font-weight:700; margin-bottom:4px;">{marker.occurrence_count}건{tag}</div>
        <div style="max-height:160px; overflow-y:auto;">{rows_html}</div>
    </div>
    """


def build_popup(marker, width: int = 390) -> folium.Popup:
    return folium.Popup(build_popup_html_str(marker), max_width=width + 10)


# =========================
# 베이스맵(VWorld)
# =========================
def add_vworld_base_layers(m, vworld_key: str, map_type: str = "base"):
    """선택한 map_type 을 켜고 나머지 VWorld 레이어는 LayerControl 로 전환 가능하게."""
    if not vworld_key:
        folium.TileLayer("OpenStreetMap", name="OSM 기본", show=True).add_to(m)
        return m
    first = map_type if map_type in VWORLD_LAYERS else "base"
    order = [first] + [k for k in VWORLD_LAYERS if k != first]
    for i, key in enumerate(order):
        name, layer, ext = VWORLD_LAYERS[key]
        folium.TileLayer(
            tiles=VWORLD_WMTS_URL.format(key=vworld_key, layer=layer, ext=ext),
            attr='&copy; <a href="http://www.vworld.kr">VWorld</a>',
            name=name,
            max_zoom=MAP_MAX_ZOOM,
            show=(i == 0),
        ).add_to(m)
    return m


def _inject_map_css(m):
    css = Element("""
    <style>
      .marker-count-label div { color:#fff; font-weight:700; text-shadow:0 0 2px rgba(0,0,0,.6); }
      .leaflet-control { z-index: 10000 !important; }
    </style>
    """)
    m.get_root().html.add_child(css)


# =========================
# 마커 레이어
# =========================
def add_marker_layer(m, markers, layer_name: str = "주소 마커"):
    fg = folium.FeatureGroup(name=layer_name, show=True)
    for mk in markers:
        r = marker_radius(mk.occurrence_count)
        folium.CircleMarker(
            location=[mk.latitude, mk.longitude],
            radius=r,
            color=LINE_COLOR,
            weight=2,
            fill=True,
            fill_color=FILL_COLOR,
            fill_opacity=0.8,
            popup=build_popup(mk),
            tooltip=escape(f"{mk.representative_address} ({mk.occurrence_count}건)"),
        ).add_to(fg)
        if mk.occurrence_count >= LABEL_MIN_COUNT:
            folium.Marker(
                location=[mk.latitude, mk.longitude],
                icon=folium.DivIcon(
                    class_name="marker-count-label",
                    html=(f'<div style="width:30px;height:30px;margin-left:-15px;margin-top:-15px;'
                          f'display:flex;align-items:center;justify-content:center;">{mk.occurrence_count}</div>'),
                    icon_size=(30, 30),
                    icon_anchor=(0, 0),
                ),
            ).add_to(fg)
    fg.add_to(m)
    return m


def build_marker_map(markers, *, vworld_key: str = "", map_type: str = "base", focus=None) -> folium.Map:
    """
    markers: Marker 목록 (좌표별 집계 결과)
    focus: (lat, lon, label) — 단건 검색 결과. 있으면 해당 위치로 확대
    """
    markers = list(markers or [])
    if focus is not None:
        center, zoom = [focus[0], focus[1]], FOCUS_ZOOM
    else:
        center, zoom = [MAP_CENTER_LAT, MAP_CENTER_LON], MAP_ZOOM
    m = folium.Map(location=center, zoom_start=zoom,
                   min_zoom=MAP_MIN_ZOOM, max_zoom=MAP_MAX_ZOOM, tiles=None)
    add_vworld_base_layers(m, vworld_key, map_type)
    _inject_map_css(m)
    m.add_child(MiniMap(toggle_display=True))

    if markers:
        add_marker_layer(m, markers)

    if focus is not None:
        lat, lon, label = focus
        folium.Marker(location=[lat, lon], tooltip=escape(str(label or "")),
                      icon=folium.Icon(color="red", icon="info-sign")).add_to(m)
    elif markers:
        lats = [mk.latitude for mk in markers]
        lons = [mk.longitude for mk in markers]
        m.fit_bounds([[min(lats), min(lons)], [max(lats), max(lons)]], padding=(50, 50), max_zoom=17)

    folium.LayerControl(collapsed=True).add_to(m)
    return m
