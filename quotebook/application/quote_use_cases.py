from __future__ import annotations

import json
import logging
import random
from typing import Any, Iterable

from quotebook.application.record_store import RecordStore
from quotebook.core.errors import ValidationError
from quotebook.domain.models import QuoteRecord
from quotebook.domain.ports import KeyValueStorePort

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"
SELECTED_CATEGORY_KEY = "selected_category"
LAST_QUOTE_KEY = "last_quote"

DEFAULT_QUOTES: tuple[tuple[str, str], ...] = (
    ("Believe in yourself!", "Motivation"),
    ("Stay positive, work hard, make it happen.", "Inspiration"),
    ("Code is like humor. When you have to explain it, it’s bad.", "Programming"),
)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class QuoteUseCases:
    def __init__(self, store: RecordStore, settings: KeyValueStorePort) -> None:
        self._store = store
        self._settings = settings

    def seed_if_empty(self) -> int:
        if len(self._store):
            return 0
        added = self._store.extend(QuoteRecord.new_local(text, category) for text, category in DEFAULT_QUOTES)
        logger.info("Store vacío: cargadas %s citas por defecto", added)
        return added

    def add_quote(self, text: str, category: str) -> QuoteRecord:
        clean_text = _clean(text)
        clean_category = _clean(category)
        if not clean_text or not clean_category:
            raise ValidationError("Introduce el texto de la cita y su categoría.")
        record = QuoteRecord.new_local(clean_text, clean_category)
        self._store.upsert(record)
        logger.info("Cita añadida %s en categoría %s", record.id, clean_category)
        return record

    def import_quotes(self, items: Iterable[Any]) -> int:
        """Admite en bloque los elementos con ``text`` y ``category`` no vacíos.

        Los elementos inválidos se omiten en silencio; devuelve cuántos entraron.
        """
        accepted: list[QuoteRecord] = []
        skipped = 0
        for item in items:
            if not isinstance(item, dict):
                skipped += 1
                continue
            text = _clean(item.get("text"))
            category = _clean(item.get("category"))
            if not text or not category:
                skipped += 1
                continue
            accepted.append(QuoteRecord.new_local(text, category))
        added = self._store.extend(accepted)
        logger.info("Importación: aceptadas=%s omitidas=%s", added, skipped)
        return added

    def import_json(self, raw: str) -> int:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError("El fichero no contiene JSON válido.") from exc
        if not isinstance(payload, list):
            raise ValidationError("El fichero debe contener una lista de citas.")
        return self.import_quotes(payload)

    def export_json(self) -> str:
        return json.dumps([record.to_dict() for record in self._store.all()], indent=2, ensure_ascii=False)

    def list_categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for record in self._store.all():
            seen.setdefault(record.category, None)
        return list(seen)

    def quotes_in_category(self, category: str = ALL_CATEGORIES) -> list[QuoteRecord]:
        records = self._store.all()
        if category == ALL_CATEGORIES:
            return list(records)
        return [record for record in records if record.category == category]

    def random_quote(self, category: str | None = None, rng: random.Random | None = None) -> QuoteRecord | None:
        candidates = self.quotes_in_category(category or self.selected_category())
        if not candidates:
            return None
        chosen = (rng or random).choice(candidates)
        self._settings.set(LAST_QUOTE_KEY, json.dumps(chosen.to_dict(), ensure_ascii=False))
        return chosen

    def last_quote(self) -> QuoteRecord | None:
        """Última cita mostrada por ``random_quote``, si la hay."""
        raw = self._settings.get(LAST_QUOTE_KEY)
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Valor ilegible en %s; se ignora", LAST_QUOTE_KEY)
            return None
        if not isinstance(payload, dict):
            return None
        return QuoteRecord.from_dict(payload)

    def selected_category(self) -> str:
        stored = self._settings.get(SELECTED_CATEGORY_KEY) or ALL_CATEGORIES
        if stored != ALL_CATEGORIES and stored not in self.list_categories():
            logger.info("La categoría guardada %s ya no existe; se usa %s", stored, ALL_CATEGORIES)
            return ALL_CATEGORIES
        return stored

    def select_category(self, category: str) -> str:
        selected = _clean(category) or ALL_CATEGORIES
        self._settings.set(SELECTED_CATEGORY_KEY, selected)
        return selected
