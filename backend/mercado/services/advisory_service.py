"""
AI advisory adapter (Gemini generateContent over REST).

Read-only: every operation builds a prompt from catalog/ledger data and
returns text or parsed JSON. Nothing here writes to the database.

FAIL-SOFT:
- no API key          -> AI_DISABLED_MESSAGE (text ops), [] / None (JSON ops)
- transport/HTTP error -> AI_ERROR_MESSAGE (text ops), [] / None (JSON ops)
- unparseable JSON    -> [] / None

No retries. No client timeout unless ADVISORY_TIMEOUT_SECONDS is set.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Iterable

import httpx
from flask import current_app

from mercado.time_utils import parse_iso_datetime, utcnow
from mercado.validation import money_str

logger = logging.getLogger(__name__)

AI_DISABLED_MESSAGE = (
    "A funcionalidade de IA está desativada. "
    "Configure a chave de API do Gemini para ativá-la."
)
AI_ERROR_MESSAGE = (
    "Ocorreu um erro ao comunicar com a IA. "
    "Por favor, tente novamente mais tarde."
)

SENTIMENTS = ("Positivo", "Negativo", "Misto")

SPIKE_MIN_SALES = 10
SPIKE_WINDOW = timedelta(hours=1)
PROMOTION_RECENT_SALES = 20


class AdvisoryError(Exception):
    """Internal: the LLM call failed. Never leaves this module."""
    pass


class AdvisoryDisabled(AdvisoryError):
    pass


class AdvisoryClient:
    """Thin synchronous client for POST {base}/models/{model}:generateContent."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @classmethod
    def from_config(cls, config) -> "AdvisoryClient":
        return cls(
            api_key=config.get("GEMINI_API_KEY"),
            model=config.get("GEMINI_MODEL", "gemini-2.5-flash"),
            base_url=config.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            timeout_seconds=config.get("ADVISORY_TIMEOUT_SECONDS"),
            transport=config.get("ADVISORY_TRANSPORT"),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate_content(self, prompt: str, response_schema: dict | None = None) -> str:
        """
        Single request, no retry. Returns the concatenated candidate text.

        Raises AdvisoryDisabled without a key and AdvisoryError on transport,
        HTTP or payload problems.
        """
        if not self.enabled:
            raise AdvisoryDisabled("GEMINI_API_KEY is not set")

        body: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if response_schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        try:
            with httpx.Client(transport=self.transport, timeout=self.timeout_seconds) as client:
                response = client.post(
                    self.url,
                    json=body,
                    headers={"x-goog-api-key": self.api_key},
                )
        except httpx.HTTPError as exc:
            raise AdvisoryError(f"transport error: {exc}") from exc

        if response.status_code >= 400:
            raise AdvisoryError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
            parts = payload["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AdvisoryError("unexpected response payload") from exc

        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def get_client() -> AdvisoryClient:
    return AdvisoryClient.from_config(current_app.config)


# =============================================================================
# CALL WRAPPERS
# =============================================================================

def _call_text(client: AdvisoryClient, prompt: str) -> str:
    try:
        return client.generate_content(prompt)
    except AdvisoryDisabled:
        return AI_DISABLED_MESSAGE
    except AdvisoryError as exc:
        logger.error("Advisory call failed: %s", exc)
        return AI_ERROR_MESSAGE


def _call_json(client: AdvisoryClient, prompt: str, schema: dict):
    try:
        text = client.generate_content(prompt, response_schema=schema)
    except AdvisoryDisabled:
        return None
    except AdvisoryError as exc:
        logger.error("Advisory call failed: %s", exc)
        return None
    try:
        return json.loads(_strip_fence(text))
    except ValueError:
        logger.warning("Advisory returned non-JSON content")
        return None


def _strip_fence(text: str) -> str:
    text = (text or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _json_list(value, required: tuple[str, ...]) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [row for row in value if isinstance(row, dict) and all(k in row for k in required)]


# =============================================================================
# DATA HELPERS
# =============================================================================

def _as_dict(record) -> dict:
    return record if isinstance(record, dict) else record.to_dict()


def _units_by(sales: Iterable[dict], key: str) -> dict:
    out: dict = {}
    for sale in sales:
        for item in sale.get("items") or []:
            out[item[key]] = out.get(item[key], 0) + int(item["quantity"])
    return out


def _report_money(report: dict, field: str) -> str:
    return money_str(report.get(f"{field}_cents") or 0)


# =============================================================================
# OPERATIONS
# =============================================================================

def sales_analysis(report, client: AdvisoryClient | None = None) -> str:
    """Markdown insight for a daily report."""
    client = client or get_client()
    report = _as_dict(report)

    sale_lines = "\n".join(
        f"- Venda #{sale['id']}: Total R$ {money_str(sale['total_cents'])}, Itens: "
        + ", ".join(f"{item['quantity']}x {item['name']}" for item in sale.get("items") or [])
        for sale in report.get("sales") or []
    )
    prompt = f"""Você é um analista de negócios especialista em varejo de supermercados. Analise os seguintes dados de vendas diárias e forneça insights acionáveis.

Dados do Relatório Diário:
- Data: {report.get('date')}
- Vendas Totais: R$ {_report_money(report, 'total_sales')}
- Caixa Inicial: R$ {_report_money(report, 'initial_cash')}
- Total de Sangrias: R$ {_report_money(report, 'total_sangria')}
- Caixa Final: R$ {_report_money(report, 'final_cash')}

Detalhes das Vendas:
{sale_lines or '- Nenhuma venda registrada.'}

Por favor, forneça uma análise concisa em formato de tópicos (markdown), cobrindo:
1. **Resumo de Desempenho:** Um breve resumo do dia.
2. **Produtos em Destaque:** Quais produtos venderam mais ou parecem ser populares?
3. **Sugestões Estratégicas:** Uma ou duas ações para aumentar as vendas ou otimizar as operações.
4. **Observação Adicional:** Qualquer outra observação interessante.
"""
    return _call_text(client, prompt)


def ask(query: str, report, client: AdvisoryClient | None = None) -> str:
    """Answer an owner question using only the report data."""
    client = client or get_client()
    report = _as_dict(report)
    prompt = f"""Você é um assistente de análise de dados para o proprietário de um supermercado. Responda à pergunta do proprietário de forma direta e concisa, utilizando APENAS os dados fornecidos no JSON do relatório diário. Não invente informações. Se os dados não forem suficientes para responder, informe isso claramente.

Pergunta do Proprietário: "{query}"

Dados do Relatório Diário (JSON):
{json.dumps(report, ensure_ascii=False, indent=2)}

Sua Resposta:
"""
    return _call_text(client, prompt)


REPLENISHMENT_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "product_id": {"type": "INTEGER"},
            "product_name": {"type": "STRING"},
            "current_stock": {"type": "INTEGER"},
            "sales_today": {"type": "INTEGER"},
            "suggested_quantity": {"type": "INTEGER"},
            "suggestion_text": {"type": "STRING"},
        },
        "required": [
            "product_id", "product_name", "current_stock",
            "sales_today", "suggested_quantity", "suggestion_text",
        ],
    },
}


def replenishment_suggestions(products, sales, client: AdvisoryClient | None = None) -> list[dict]:
    """
    Restock quantities for products below their low-stock threshold.

    Returns [] without calling the API when nothing is low.
    """
    products = [_as_dict(p) for p in products]
    low = [p for p in products if p["stock"] < p["low_stock_threshold"]]
    if not low:
        return []

    client = client or get_client()
    sold = _units_by((_as_dict(s) for s in sales), "id")
    data = [
        {
            "id": p["id"],
            "name": p["name"],
            "current_stock": p["stock"],
            "low_stock_threshold": p["low_stock_threshold"],
            "sales_today": sold.get(p["id"], 0),
        }
        for p in low
    ]
    prompt = f"""Você é um especialista em gestão de estoque de supermercado. Analise a lista de produtos com baixo estoque fornecida em JSON.
Com base nas vendas de hoje ("sales_today"), calcule uma sugestão de reposição ("suggested_quantity") para cada produto.
A sugestão deve cobrir as vendas de aproximadamente 7 dias, com uma pequena margem de segurança.
Se um produto está com baixo estoque mas não teve vendas hoje, sugira repor uma quantidade modesta (talvez o dobro do "low_stock_threshold") como precaução.
Forneça uma breve justificativa em "suggestion_text".

Dados dos Produtos com Baixo Estoque:
{json.dumps(data, ensure_ascii=False, indent=2)}

Responda APENAS com o JSON formatado de acordo com o schema.
"""
    result = _call_json(client, prompt, REPLENISHMENT_SCHEMA)
    return _json_list(result, tuple(REPLENISHMENT_SCHEMA["items"]["required"]))


FORECAST_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "product_name": {"type": "STRING"},
            "predicted_demand": {"type": "STRING"},
            "reasoning": {"type": "STRING"},
        },
        "required": ["product_name", "predicted_demand", "reasoning"],
    },
}


def demand_forecast(products, sales, client: AdvisoryClient | None = None) -> list[dict]:
    """Next-business-day demand ranges for the five most promising products."""
    client = client or get_client()
    sold = _units_by((_as_dict(s) for s in sales), "id")
    data = [
        {
            "id": p["id"],
            "name": p["name"],
            "price": money_str(p["price_cents"]),
            "current_stock": p["stock"],
            "sales_today": sold.get(p["id"], 0),
        }
        for p in (_as_dict(p) for p in products)
    ]
    prompt = f"""Você é um analista de dados preditivo especialista em varejo. Analise os dados de vendas e o catálogo de produtos de um supermercado.
Preveja a demanda para os 5 produtos com maior potencial de venda para o próximo dia útil.
Baseie sua previsão nas vendas de hoje ("sales_today"), considerando também o preço e o tipo de produto.

Dados para Análise:
{json.dumps(data, ensure_ascii=False, indent=2)}

Forneça uma resposta APENAS em formato JSON, seguindo o schema.
Para "predicted_demand", forneça uma faixa de vendas (ex: "15-20 unidades").
Para "reasoning", forneça uma justificativa muito curta.
"""
    result = _call_json(client, prompt, FORECAST_SCHEMA)
    return _json_list(result, tuple(FORECAST_SCHEMA["items"]["required"]))[:5]


FEEDBACK_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "sentiment": {"type": "STRING", "enum": list(SENTIMENTS)},
        "key_topics": {"type": "ARRAY", "items": {"type": "STRING"}},
        "suggestion": {"type": "STRING"},
    },
    "required": ["sentiment", "key_topics", "suggestion"],
}


def analyze_feedback(text: str, client: AdvisoryClient | None = None) -> dict | None:
    """Sentiment, topics and a suggested action; None for blank text or failure."""
    if not isinstance(text, str) or not text.strip():
        return None

    client = client or get_client()
    prompt = f"""Você é um analista de experiência do cliente para um supermercado. Analise o feedback de um cliente.

Feedback do Cliente: "{text.strip()}"

Retorne um objeto JSON com:
- sentiment: "Positivo", "Negativo" ou "Misto".
- key_topics: array com os principais tópicos mencionados (ex: "Atendimento", "Preço", "Limpeza").
- suggestion: uma sugestão de ação curta e direta para o gerente.

Responda APENAS com o JSON formatado.
"""
    result = _call_json(client, prompt, FEEDBACK_SCHEMA)
    if not isinstance(result, dict) or result.get("sentiment") not in SENTIMENTS:
        return None
    topics = result.get("key_topics")
    return {
        "sentiment": result["sentiment"],
        "key_topics": [str(t) for t in topics] if isinstance(topics, list) else [],
        "suggestion": str(result.get("suggestion") or ""),
    }


SPIKE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "product_name": {"type": "STRING"},
            "observation": {"type": "STRING"},
        },
        "required": ["product_name", "observation"],
    },
}


def _sale_time(sale: dict) -> datetime | None:
    value = sale.get("timestamp")
    if isinstance(value, str):
        return parse_iso_datetime(value)
    return value


def sales_spike_alerts(sales, now: datetime | None = None, client: AdvisoryClient | None = None) -> list[dict]:
    """
    Products selling abnormally fast in the last hour.

    Returns [] without calling the API when there are fewer than 10 sales
    or none inside the last hour.
    """
    sales = [_as_dict(s) for s in sales]
    if len(sales) < SPIKE_MIN_SALES:
        return []

    now = now or utcnow()
    window_start = now - SPIKE_WINDOW
    recent = [s for s in sales if (_sale_time(s) or datetime.min) > window_start]
    if not recent:
        return []

    client = client or get_client()
    data = {
        "total_day_sales_summary": _units_by(sales, "name"),
        "last_hour_sales_summary": _units_by(recent, "name"),
    }
    prompt = f"""Você é um monitor de vendas de varejo. Analise os dados de vendas.
"total_day_sales_summary" contém a contagem de vendas de cada produto hoje.
"last_hour_sales_summary" contém a contagem de vendas de cada produto apenas na última hora.

Identifique produtos vendendo a uma taxa anormalmente alta na última hora em comparação com o padrão do dia.
Ex.: 5 unidades no dia com 4 na última hora é um pico; 100 no dia com 10 na última hora é ritmo normal.

Dados:
{json.dumps(data, ensure_ascii=False, indent=2)}

Responda APENAS com um array JSON de objetos, um por pico de vendas. Se nenhum pico for detectado, retorne [].
"""
    result = _call_json(client, prompt, SPIKE_SCHEMA)
    return _json_list(result, tuple(SPIKE_SCHEMA["items"]["required"]))


def promotion_suggestions(query: str, products, sales, client: AdvisoryClient | None = None) -> str:
    """Markdown promotion idea for an owner request, grounded in catalog and recent sales."""
    client = client or get_client()
    catalog = [
        {"id": p["id"], "name": p["name"], "price": money_str(p["price_cents"]), "stock": p["stock"]}
        for p in (_as_dict(p) for p in products)
    ]
    recent = [_as_dict(s) for s in sales][-PROMOTION_RECENT_SALES:]
    summary = [
        {
            "total": money_str(s["total_cents"]),
            "item_count": len(s.get("items") or []),
            "items": [i["name"] for i in s.get("items") or []],
        }
        for s in recent
    ]
    prompt = f"""Você é um consultor de marketing especialista em varejo para supermercados. Crie sugestões de promoções criativas e lucrativas com base na solicitação do proprietário e nos dados abaixo.

Solicitação do Proprietário: "{query}"

- Catálogo de Produtos (JSON): {json.dumps(catalog, ensure_ascii=False, indent=2)}
- Resumo das Últimas {PROMOTION_RECENT_SALES} Vendas (JSON): {json.dumps(summary, ensure_ascii=False, indent=2)}

A resposta, em markdown, deve incluir um nome para a promoção, os produtos envolvidos, a mecânica, uma sugestão de preço ou desconto e uma breve justificativa.

Sua Resposta:
"""
    return _call_text(client, prompt)
