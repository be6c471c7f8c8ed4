from __future__ import annotations

from typing import Any

from quotebook.core.errors import MalformedPayloadError
from quotebook.domain.models import Origin, QuoteRecord, utc_now_iso

QUOTE_HEADERS: list[str] = ["id", "text", "category", "updated_at"]
REQUIRED_HEADERS: tuple[str, ...] = ("id", "text", "category")


def normalize_cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_headers(headers: list[Any]) -> list[str]:
    normalized: list[str] = []
    for idx, header in enumerate(headers):
        clean = normalize_cell(header).lower()
        normalized.append(clean if clean else f"col_{idx + 1}")
    return normalized


def normalize_payload(headers: list[str], row: list[Any]) -> dict[str, str]:
    return {header: normalize_cell(row[idx] if idx < len(row) else "") for idx, header in enumerate(headers)}


def is_non_empty_payload(payload: dict[str, Any]) -> bool:
    return any(normalize_cell(value) for value in payload.values())


def normalize_rows(values: Any) -> list[tuple[int, dict[str, str]]]:
    """Convierte la matriz de la hoja en ``(número_de_fila, payload)``.

    Las filas en blanco se ignoran. Una matriz sin las columnas obligatorias
    se considera una respuesta malformada.
    """
    if not isinstance(values, list) or any(not isinstance(row, list) for row in values):
        raise MalformedPayloadError("La hoja remota no devolvió una matriz de filas.")
    if not values:
        return []
    headers = normalize_headers(values[0])
    missing = [name for name in REQUIRED_HEADERS if name not in headers]
    if missing:
        raise MalformedPayloadError(f"Faltan columnas en la hoja remota: {', '.join(missing)}")
    rows: list[tuple[int, dict[str, str]]] = []
    for row_number, row in enumerate(values[1:], start=2):
        payload = normalize_payload(headers, row)
        if is_non_empty_payload(payload):
            rows.append((row_number, payload))
    return rows


def record_from_payload(payload: dict[str, str]) -> QuoteRecord | None:
    record_id = payload.get("id", "")
    text = payload.get("text", "")
    category = payload.get("category", "")
    if not record_id or not text or not category:
        return None
    return QuoteRecord(
        id=record_id,
        text=text,
        category=category,
        updated_at=payload.get("updated_at") or utc_now_iso(),
        origin=Origin.REMOTE,
    )


def row_from_record(headers: list[Any], record: QuoteRecord) -> list[str]:
    """Fila en el orden de columnas de la hoja, sea cual sea su capitalización."""
    values = record.to_dict()
    return [values.get(header, "") for header in normalize_headers(headers)]


def find_id_row(rows: list[tuple[int, dict[str, str]]], record_id: str) -> int | None:
    for row_number, payload in rows:
        if payload.get("id") == record_id:
            return row_number
    return None
