"""테스트용 VWorld 응답/세션/클라이언트 대역."""

import requests

from vworld_geocoder import MissingApiCredentialError


def ok_payload(x, y, level4a=None, text=None):
    structure = {"level0": "대한민국", "level1": "경기도"}
    if level4a is not None:
        structure["level4A"] = level4a
    return {
        "response": {
            "status": "OK",
            "refined": {"text": text or "", "structure": structure},
            "result": {"crs": "EPSG:4326", "point": {"x": str(x), "y": str(y)}},
        }
    }


NOT_FOUND = {"response": {"status": "NOT_FOUND"}}


def error_payload(code="INVALID_RANGE", text="잘못된 요청"):
    return {"response": {"status": "ERROR", "error": {"level": "2", "code": code, "text": text}}}


class FakeResponse:
    def __init__(self, status_code=200, data=None, text="", reason="OK"):
        self.status_code = status_code
        self._data = data
        self.text = text
        self.reason = reason

    def json(self):
        if self._data is None:
            raise ValueError("No JSON object could be decoded")
        return self._data


class FakeSession:
    """requests.Session 대역: 응답/예외를 순서대로 돌려주고 호출 기록."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": headers, "timeout": timeout})
        item = self.responses.pop(0) if self.responses else FakeResponse(data=NOT_FOUND)
        if isinstance(item, Exception):
            raise item
        return item


class FakeClient:
    """VWorldClient 대역: (주소, 종류) → payload 또는 예외."""

    def __init__(self, table=None, default=NOT_FOUND, api_key="test-key"):
        self.table = table or {}
        self.default = default
        self.api_key = api_key
        self.calls = []

    def lookup(self, address, kind):
        self.calls.append((address, kind.value))
        if not self.api_key:
            raise MissingApiCredentialError("no key")
        item = self.table.get((address, kind.value), self.table.get(address, self.default))
        if isinstance(item, Exception):
            raise item
        return item


def timeout_error():
    return requests.exceptions.ReadTimeout("read timed out")
