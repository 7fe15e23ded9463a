from fastapi.testclient import TestClient

import main
from main import app

client = TestClient(app)


def test_health():
    assert client.get("/").json()["status"] == "ok"


def test_chart_endpoint():
    response = client.post("/api/chart", json={
        "name": "Test", "birth_date": "1990-01-01", "birth_time": "12:00", "gender": "Male",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["day_pillar"]["stem"] == "丙"
    assert data["day_pillar"]["main_star"] == "日主"
    assert data["year_pillar"]["label"] == "年柱"
    assert len(data["luck_cycle"]) >= 1


def test_chart_strict_invalid_date_is_400():
    response = client.post("/api/chart", json={
        "birth_date": "1990-02-30", "birth_time": "12:00", "gender": "男", "strict": True,
    })
    assert response.status_code == 400


def test_chart_invalid_date_falls_back():
    response = client.post("/api/chart", json={"birth_date": "garbage", "gender": "女"})
    assert response.status_code == 200
    assert response.json()["year_pillar"]["stem"] == "己"


def test_chart_text_endpoint_with_focus():
    response = client.post("/api/chart/text", json={
        "user_data": {"birth_date": "1990-01-01", "birth_time": "12:00", "gender": "男"},
        "focus": {"decade_index": 0, "annual_index": 0},
    })
    assert response.status_code == 200
    text = response.json()["text"]
    assert "【年柱】" in text and "【当前焦点】" in text


def test_analysis_without_key_is_500(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "DEEPSEEK")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "")
    response = client.post("/api/analysis", json={
        "user_data": {"birth_date": "1990-01-01", "birth_time": "12:00", "gender": "男"},
    })
    assert response.status_code == 500


def fake_analysis(chart, config, focus=None):
    yield "日主丙火，"
    yield "身强喜泄。\n\n【猜你想问】\n- 事业如何？\n"
    yield "- 何时结婚？\n"


def test_analysis_collected_splits_suggestions(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "DEEPSEEK")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
    monkeypatch.setattr(main, "analyze_chart", fake_analysis)
    response = client.post("/api/analysis", json={
        "user_data": {"birth_date": "1990-01-01", "birth_time": "12:00", "gender": "男"},
        "stream": False,
    })
    assert response.status_code == 200
    data = response.json()
    assert data["markdown_content"] == "日主丙火，身强喜泄。"
    assert data["suggestions"] == ["事业如何？", "何时结婚？"]


def test_analysis_streams_plain_text(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "DEEPSEEK")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
    monkeypatch.setattr(main, "analyze_chart", fake_analysis)
    response = client.post("/api/analysis", json={
        "user_data": {"birth_date": "1990-01-01", "birth_time": "12:00", "gender": "男"},
    })
    assert response.status_code == 200
    assert response.text.startswith("日主丙火，")
    assert "【猜你想问】" in response.text
