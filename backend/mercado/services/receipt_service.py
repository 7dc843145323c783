"""
Plain-text receipt rendering for thermal printers (fixed width).

Layout:
    header     tenant name, address, CNPJ/IE, phone, "NAO E DOCUMENTO FISCAL"
    items      code (last 6 chars of the product id) + name, then
               quantity x unit price and the line total right aligned
    totals     item count, grand total, amount paid
    footer     operator, timestamp
"""

from __future__ import annotations

from typing import Any

from mercado.time_utils import parse_iso_datetime, receipt_timestamp
from mercado.validation import money_str

DEFAULT_WIDTH = 40
DEFAULT_TENANT_NAME = "Seu Supermercado"
PAYMENT_METHOD = "Cartão Crédito"


def _as_dict(record: Any) -> dict:
    if record is None:
        return {}
    if isinstance(record, dict):
        return record
    return record.to_dict()


def _center(text: str, width: int) -> str:
    return text[:width].center(width).rstrip()


def _pair(left: str, right: str, width: int) -> str:
    space = width - len(right)
    return left[: max(space - 1, 0)].ljust(space) + right


def _rule(width: int) -> str:
    return "-" * width


def _timestamp(value) -> str:
    if isinstance(value, str):
        value = parse_iso_datetime(value)
    return receipt_timestamp(value) if value else ""


def render_receipt(sale, supermarket, operator_name: str | None, width: int = DEFAULT_WIDTH) -> str:
    sale = _as_dict(sale)
    market = _as_dict(supermarket)

    lines = [_center(market.get("name") or DEFAULT_TENANT_NAME, width)]
    if market.get("address"):
        lines.append(_center(market["address"], width))
    if market.get("cnpj"):
        lines.append(_center(f"CNPJ: {market['cnpj']} IE: {market.get('ie') or ''}".rstrip(), width))
    if market.get("phone"):
        lines.append(_center(f"Telefone: {market['phone']}", width))
    lines.append(_rule(width))
    lines.append(_center("NAO E DOCUMENTO FISCAL", width))
    lines.append(_rule(width))
    lines.append(_pair("Cod Descricao", "Vl. Total", width))
    lines.append(_rule(width))

    item_count = 0
    for item in sale.get("items") or []:
        quantity = int(item["quantity"])
        unit = int(item["price_cents"])
        item_count += quantity
        code = str(item["id"])[-6:]
        lines.append(f"{code} {item['name']}"[:width])
        lines.append(_pair(f"  {quantity:.3f} x {money_str(unit)}", money_str(unit * quantity), width))

    total = money_str(sale.get("total_cents") or 0)
    lines.append(_rule(width))
    lines.append(_pair("Qtd. Total de Itens:", str(item_count), width))
    lines.append(_pair("VALOR TOTAL R$:", total, width))
    lines.append(_rule(width))
    lines.append(_pair("Forma Pagamento:", PAYMENT_METHOD, width))
    lines.append(_pair("VALOR PAGO R$:", total, width))
    lines.append(_rule(width))
    lines.append(_center("CLIENTES DIVERSOS", width))
    lines.append(_center(f"Vendedor: {operator_name or 'CAIXA'}", width))
    lines.append(_center(_timestamp(sale.get("timestamp")), width))

    return "\n".join(lines) + "\n"


def receipt_qr_text(sale, supermarket) -> str:
    """One-line summary encoded in the digital receipt QR code."""
    sale = _as_dict(sale)
    market = _as_dict(supermarket)
    ts = sale.get("timestamp")
    if isinstance(ts, str):
        ts = parse_iso_datetime(ts)
    day = ts.strftime("%d/%m/%Y") if ts else ""
    return f"Compra no {market.get('name') or ''} - Total: R$ {money_str(sale.get('total_cents') or 0)} em {day}"
