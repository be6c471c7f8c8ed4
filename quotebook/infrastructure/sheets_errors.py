from __future__ import annotations

import json

import gspread
from google.auth.exceptions import DefaultCredentialsError, TransportError as GoogleTransportError
from requests.exceptions import RequestException

from quotebook.core.errors import MalformedPayloadError, TransientTransportError, TransportError


class SheetsConfigError(TransportError):
    """La hoja no es accesible por configuración; reintentar no sirve."""


class SheetsApiDisabledError(SheetsConfigError):
    pass


class SheetsPermissionError(SheetsConfigError):
    pass


class SheetsNotFoundError(SheetsConfigError):
    pass


class SheetsCredentialsError(SheetsConfigError):
    pass


class SheetsRateLimitError(TransientTransportError):
    pass


class SheetsUnavailableError(TransientTransportError):
    pass


_RETRYABLE_STATUS = frozenset({429, 500, 502, 503})

_API_ERROR_RULES: tuple[tuple[type[TransportError], tuple[str, ...], str], ...] = (
    (
        SheetsRateLimitError,
        ("[429]", "resource_exhausted", "rate_limit_exceeded", "quota exceeded", "read requests per minute"),
        "Cuota de Google Sheets agotada; la sincronización se reintentará en el próximo ciclo.",
    ),
    (
        SheetsApiDisabledError,
        ("google sheets api has not been used", "it is disabled"),
        "La API de Google Sheets no está habilitada en el proyecto de Google Cloud.",
    ),
    (
        SheetsNotFoundError,
        ("[404]", "requested entity was not found"),
        "El spreadsheet_id configurado no existe o no es accesible.",
    ),
    (
        SheetsPermissionError,
        ("[403]", "permission_denied"),
        "La hoja de citas no está compartida con la cuenta de servicio.",
    ),
)


def api_error_details(ex: gspread.exceptions.APIError) -> tuple[str, int | None]:
    response = getattr(ex, "response", None)
    text = getattr(response, "text", "") or str(ex)
    return text.strip().lower(), getattr(response, "status_code", None)


def classify_api_error(text_lower: str, status_code: int | None) -> TransportError:
    if status_code in _RETRYABLE_STATUS:
        return SheetsRateLimitError(_API_ERROR_RULES[0][2])
    for error_type, tokens, message in _API_ERROR_RULES:
        if any(token in text_lower for token in tokens):
            return error_type(message)
    if status_code == 403:
        return SheetsPermissionError(_API_ERROR_RULES[3][2])
    if status_code == 404:
        return SheetsNotFoundError(_API_ERROR_RULES[2][2])
    return SheetsConfigError(f"Google Sheets respondió {status_code}: {text_lower[:200]}")


def map_gspread_exception(ex: Exception) -> Exception:
    """Traduce un fallo de gspread, google-auth o red a la taxonomía de transporte.

    Los errores que ya pertenecen a la taxonomía se devuelven tal cual.
    """
    if isinstance(ex, (TransportError, MalformedPayloadError)):
        return ex
    if isinstance(ex, gspread.exceptions.APIError):
        return classify_api_error(*api_error_details(ex))
    if isinstance(ex, gspread.exceptions.WorksheetNotFound):
        return SheetsNotFoundError(f"No existe la pestaña '{ex}' en la hoja de citas.")
    if isinstance(ex, FileNotFoundError):
        return SheetsCredentialsError(f"No se encuentra el fichero de credenciales: {ex.filename or 'credentials.json'}.")
    if isinstance(ex, (json.JSONDecodeError, DefaultCredentialsError)):
        return SheetsCredentialsError("El fichero de credenciales no es una cuenta de servicio válida.")
    if isinstance(ex, (RequestException, GoogleTransportError, ConnectionError, TimeoutError)):
        return SheetsUnavailableError(f"Sin conexión con Google Sheets: {ex}")
    return SheetsConfigError(str(ex))
