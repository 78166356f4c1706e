import pandas as pd

from batch_map import main
from settings import Settings
from tests.fakes import FakeResponse, FakeSession, ok_payload


def _write_csv(path, addresses):
    pd.DataFrame({"주소": addresses}).to_csv(path, index=False, encoding="utf-8-sig")


def test_batch_writes_map_and_failed_csv(tmp_path, capsys):
    src = tmp_path / "list.csv"
    _write_csv(src, ["경기 수원시 영통구 영통동 123", "", "경기도 수원시 영통구 영통동 123"])
    out = tmp_path / "out" / "map.html"
    failed = tmp_path / "out" / "failed.csv"
    session = FakeSession(
        FakeResponse(data=ok_payload(127.0, 37.0)),
        FakeResponse(data=ok_payload(127.0, 37.0)),
    )

    code = main([str(src), "--out", str(out), "--failed", str(failed)],
                settings=Settings(vworld_api_key="k", vworld_map_key="k", pace_sec=0), session=session)

    assert code == 0
    assert out.exists()
    df = pd.read_csv(failed, encoding="utf-8-sig")
    assert df["행"].tolist() == [3]
    assert df["실패 사유"].tolist() == ["empty address"]
    assert "총 3건 / 성공 2건 / 실패 1건" in capsys.readouterr().out
    assert len(session.calls) == 2


def test_batch_without_key_exits_3(tmp_path):
    src = tmp_path / "list.csv"
    _write_csv(src, ["서울 중구"])
    session = FakeSession()
    assert main([str(src), "--out", str(tmp_path / "m.html")], settings=Settings(), session=session) == 3
    assert session.calls == []


def test_batch_missing_input_exits_2(tmp_path):
    assert main([str(tmp_path / "nope.xlsx")], settings=Settings(vworld_api_key="k")) == 2


def test_batch_invalid_key_response_exits_3(tmp_path):
    src = tmp_path / "list.csv"
    _write_csv(src, ["서울 중구 세종대로 110"])
    session = FakeSession(FakeResponse(data={
        "response": {"status": "ERROR", "error": {"code": "INVALID_KEY", "text": "등록되지 않은 인증키"}}
    }))
    code = main([str(src), "--out", str(tmp_path / "m.html")],
                settings=Settings(vworld_api_key="bad", pace_sec=0), session=session)
    assert code == 3
    assert not (tmp_path / "m.html").exists()
