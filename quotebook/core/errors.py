from __future__ import annotations


class AppError(Exception):
    pass


class BusinessError(AppError):
    """Operación rechazada por datos del usuario; no se reintenta."""


class ValidationError(BusinessError):
    pass


class ConflictIndexError(BusinessError, IndexError):
    """Índice de conflicto que ya no referencia una entrada pendiente."""

    def __init__(self, index: int, pending: int) -> None:
        super().__init__(f"Conflicto {index} inexistente (pendientes: {pending}).")
        self.index = index
        self.pending = pending


class InfraError(AppError):
    pass


class PersistenceError(InfraError):
    """El almacén local no pudo leer o escribir; la memoria no se ha modificado."""


class ExternalServiceError(InfraError):
    pass


class TransportError(ExternalServiceError):
    """Fallo al leer o escribir en la fuente remota."""


class TransientTransportError(TransportError):
    """Fallo de transporte que puede desaparecer en el siguiente ciclo."""


class MalformedPayloadError(ExternalServiceError):
    """La fuente remota respondió con datos que no se pueden interpretar."""
