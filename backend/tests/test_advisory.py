# Overview: Pytest coverage for the AI advisory adapter and its routes.

"""
Advisory tests run against httpx.MockTransport; no network access.
"""

import json
from datetime import datetime, timedelta

import httpx
import pytest

from mercado.services import advisory_service, shift_service
from mercado.services.advisory_service import AdvisoryClient, AI_DISABLED_MESSAGE, AI_ERROR_MESSAGE
from mercado.services.cart import Cart


def _reply(text, status=200):
    payload = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return httpx.Response(status, json=payload)


class Recorder:
    """MockTransport handler that remembers every request."""

    def __init__(self, response):
        self.response = response
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if callable(self.response):
            return self.response(request)
        return self.response

    @property
    def last_body(self):
        return json.loads(self.requests[-1].content)


def _client(handler, api_key="test-key"):
    return AdvisoryClient(
        api_key=api_key,
        model="gemini-test",
        base_url="https://llm.example/v1beta/",
        transport=httpx.MockTransport(handler),
    )


def _product(pid, name, stock, threshold=10, price_cents=500):
    return {"id": pid, "name": name, "stock": stock, "low_stock_threshold": threshold, "price_cents": price_cents}


def _sale(sid, timestamp, items):
    return {"id": sid, "total_cents": 500, "timestamp": timestamp, "items": items}


REPORT = {
    "date": "07/03/2026",
    "total_sales_cents": 4550,
    "initial_cash_cents": 20000,
    "total_sangria_cents": 3000,
    "final_cash_cents": 21550,
    "sales": [{"id": 1, "total_cents": 4550, "items": [{"id": 1, "name": "Cesta", "quantity": 1}]}],
}


class TestAdvisoryClient:
    def test_request_shape(self):
        recorder = Recorder(_reply("ok"))
        client = _client(recorder)

        assert client.generate_content("oi", response_schema={"type": "OBJECT"}) == "ok"

        request = recorder.requests[0]
        assert str(request.url) == "https://llm.example/v1beta/models/gemini-test:generateContent"
        assert request.headers["x-goog-api-key"] == "test-key"
        body = recorder.last_body
        assert body["contents"][0]["parts"][0]["text"] == "oi"
        assert body["generationConfig"]["responseMimeType"] == "application/json"

    def test_plain_text_has_no_generation_config(self):
        recorder = Recorder(_reply("ok"))
        _client(recorder).generate_content("oi")
        assert "generationConfig" not in recorder.last_body

    def test_disabled_without_key(self):
        recorder = Recorder(_reply("ok"))
        client = _client(recorder, api_key=None)

        assert not client.enabled
        assert advisory_service.sales_analysis(REPORT, client=client) == AI_DISABLED_MESSAGE
        assert recorder.requests == []


class TestTextOperations:
    def test_sales_analysis_prompt(self):
        recorder = Recorder(_reply("## Resumo"))
        text = advisory_service.sales_analysis(REPORT, client=_client(recorder))

        assert text == "## Resumo"
        prompt = recorder.last_body["contents"][0]["parts"][0]["text"]
        assert "Vendas Totais: R$ 45.50" in prompt
        assert "1x Cesta" in prompt

    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"unexpected": True}),
    ])
    def test_failures_return_error_message(self, response):
        assert advisory_service.ask("Quanto vendi?", REPORT, client=_client(Recorder(response))) == AI_ERROR_MESSAGE

    def test_transport_error(self):
        def explode(request):
            raise httpx.ConnectError("offline", request=request)

        assert advisory_service.ask("Quanto vendi?", REPORT, client=_client(explode)) == AI_ERROR_MESSAGE

    def test_promotions_use_last_sales(self):
        recorder = Recorder(_reply("Promo"))
        sales = [_sale(i, None, [{"id": 1, "name": f"Item{i}", "quantity": 1}]) for i in range(25)]

        advisory_service.promotion_suggestions("leite", [_product(1, "Leite", 5)], sales, client=_client(recorder))

        prompt = recorder.last_body["contents"][0]["parts"][0]["text"]
        assert "Item24" in prompt
        assert "Item4\"" not in prompt


class TestJsonOperations:
    def test_replenishment_skips_call_when_nothing_low(self):
        recorder = Recorder(_reply("[]"))
        result = advisory_service.replenishment_suggestions([_product(1, "Arroz", 50)], [], client=_client(recorder))
        assert result == []
        assert recorder.requests == []

    def test_replenishment_parses_fenced_json(self):
        rows = [{
            "product_id": 2, "product_name": "Feijao", "current_stock": 3,
            "sales_today": 4, "suggested_quantity": 30, "suggestion_text": "Repor",
        }, {"product_id": 9}]
        recorder = Recorder(_reply("```json\n" + json.dumps(rows) + "\n```"))

        result = advisory_service.replenishment_suggestions(
            [_product(1, "Arroz", 50), _product(2, "Feijao", 3)],
            [_sale(1, None, [{"id": 2, "name": "Feijao", "quantity": 4}])],
            client=_client(recorder),
        )

        assert result == rows[:1]
        prompt = recorder.last_body["contents"][0]["parts"][0]["text"]
        assert '"sales_today": 4' in prompt
        assert '"Arroz"' not in prompt

    def test_forecast_invalid_json(self):
        assert advisory_service.demand_forecast([_product(1, "Arroz", 5)], [], client=_client(Recorder(_reply("nao")))) == []

    def test_forecast_capped_at_five(self):
        rows = [{"product_name": f"P{i}", "predicted_demand": "1-2", "reasoning": "r"} for i in range(7)]
        result = advisory_service.demand_forecast([], [], client=_client(Recorder(_reply(json.dumps(rows)))))
        assert len(result) == 5

    def test_feedback(self):
        reply = {"sentiment": "Negativo", "key_topics": ["Fila"], "suggestion": "Abrir mais caixas"}
        result = advisory_service.analyze_feedback("Fila enorme", client=_client(Recorder(_reply(json.dumps(reply)))))
        assert result == reply

    @pytest.mark.parametrize("reply", [
        {"sentiment": "Feliz", "key_topics": [], "suggestion": ""},
        ["Positivo"],
    ])
    def test_feedback_rejects_bad_shape(self, reply):
        assert advisory_service.analyze_feedback("ok", client=_client(Recorder(_reply(json.dumps(reply))))) is None

    def test_feedback_blank_text(self):
        recorder = Recorder(_reply("{}"))
        assert advisory_service.analyze_feedback("  ", client=_client(recorder)) is None
        assert recorder.requests == []


class TestSpikeAlerts:
    NOW = datetime(2026, 3, 7, 15, 0)

    def _sales(self, count, minutes_ago):
        ts = (self.NOW - timedelta(minutes=minutes_ago)).strftime("%Y-%m-%dT%H:%M:%SZ")
        return [_sale(i, ts, [{"id": 1, "name": "Sorvete", "quantity": 1}]) for i in range(count)]

    def test_too_few_sales(self):
        recorder = Recorder(_reply("[]"))
        assert advisory_service.sales_spike_alerts(self._sales(9, 5), now=self.NOW, client=_client(recorder)) == []
        assert recorder.requests == []

    def test_nothing_in_last_hour(self):
        recorder = Recorder(_reply("[]"))
        assert advisory_service.sales_spike_alerts(self._sales(12, 90), now=self.NOW, client=_client(recorder)) == []
        assert recorder.requests == []

    def test_spike_detected(self):
        alert = [{"product_name": "Sorvete", "observation": "Calor"}]
        recorder = Recorder(_reply(json.dumps(alert)))
        sales = self._sales(8, 120) + self._sales(4, 10)

        assert advisory_service.sales_spike_alerts(sales, now=self.NOW, client=_client(recorder)) == alert
        prompt = recorder.last_body["contents"][0]["parts"][0]["text"]
        assert '"Sorvete": 12' in prompt
        assert '"Sorvete": 4' in prompt


class TestAdvisoryRoutes:
    @pytest.fixture
    def llm(self, app, monkeypatch):
        recorder = Recorder(_reply("Resposta da IA"))
        monkeypatch.setitem(app.config, "GEMINI_API_KEY", "test-key")
        monkeypatch.setitem(app.config, "ADVISORY_TRANSPORT", httpx.MockTransport(recorder))
        return recorder

    def test_disabled_by_default(self, client, owner_headers, open_shift):
        shift_service.close_shift(open_shift)
        resp = client.post("/api/advisory/sales-analysis", headers=owner_headers, json={})
        assert resp.status_code == 200
        assert resp.json["text"] == AI_DISABLED_MESSAGE

    def test_no_report_yet(self, client, owner_headers, llm):
        assert client.post("/api/advisory/sales-analysis", headers=owner_headers, json={}).status_code == 404
        assert client.post("/api/advisory/ask", headers=owner_headers, json={"query": "?"}).status_code == 404
        assert llm.requests == []

    def test_ask(self, client, owner_headers, open_shift, llm):
        report = shift_service.close_shift(open_shift)
        resp = client.post("/api/advisory/ask", headers=owner_headers, json={
            "query": "Quanto vendi?", "report_id": report.id,
        })
        assert resp.json["text"] == "Resposta da IA"

    @pytest.mark.parametrize("path", ["/api/advisory/ask", "/api/advisory/promotions"])
    def test_query_required(self, client, owner_headers, path, llm):
        assert client.post(path, headers=owner_headers, json={"query": "  "}).status_code == 400

    def test_non_object_body(self, client, owner_headers, llm):
        resp = client.post("/api/advisory/ask", headers=owner_headers, json=["Quanto vendi?"])
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid JSON payload"
        assert llm.requests == []

    def test_unknown_report(self, client, owner_headers, llm):
        resp = client.post("/api/advisory/forecast", headers=owner_headers, json={"report_id": 999999})
        assert resp.status_code == 404

    def test_replenishment_uses_live_sales(self, client, owner_headers, operator, products, open_shift, llm):
        cart = Cart()
        cart.add(products[1], 2)
        shift_service.record_sale(open_shift, cart.items, operator.id)

        resp = client.post("/api/advisory/replenishment", headers=owner_headers, json={})
        assert resp.status_code == 200
        assert resp.json["items"] == []
        prompt = llm.last_body["contents"][0]["parts"][0]["text"]
        assert '"sales_today": 2' in prompt

    def test_feedback_route(self, client, owner_headers, llm):
        assert client.post("/api/advisory/feedback", headers=owner_headers, json={}).status_code == 400
        resp = client.post("/api/advisory/feedback", headers=owner_headers, json={"text": "Bom"})
        assert resp.json["analysis"] is None
