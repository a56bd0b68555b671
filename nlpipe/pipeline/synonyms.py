"""
Synonym & abbreviation engine.

Folds colloquial and regional financial vocabulary into canonical terms
so the classifier's keyword tables stay small:

  1. Abbreviations     "movs" → "movimientos", "ppto" → "presupuesto"
  2. Financial terms   "plata" → "dinero", "saldo" → "balance"
  3. Regional variants "laburo" → "trabajo", "cartera" → "billetera"

The order is fixed: abbreviations expand first so the expanded words can
take part in synonym folding.

Also home of ``EntitySynonymRegistry``, the mutable alias → canonical
map consulted by the entity resolver.
"""

from __future__ import annotations

import re
import threading
from collections import defaultdict
from typing import Any

from nlpipe.schemas.entity import EntitySynonym, EntityType
from nlpipe.utils.logging import get_logger
from nlpipe.utils.text import clean_whitespace, normalize_text

logger = get_logger("nlpipe.pipeline.synonyms")


# ── Vocabulary ──────────────────────────────────────────────────────

# (pattern, replacement), applied in order
ABBREVIATIONS: list[tuple[str, str]] = [
    (r"\bmovs?\b", "movimientos"),
    (r"\bp+to\b", "presupuesto"),
    (r"\bprov\b", "proveedor"),
    (r"\bcat\b", "categoría"),
    (r"\bfact\b", "factura"),
    (r"\bsubc\b", "subcontratista"),
    (r"\bproy\b", "proyecto"),
    (r"\bxq\b", "porque"),
    (r"\bq\b", "que"),
    (r"(?<!\w)(?:u\$s|us\$)(?!\w)", "dólares"),
]

# canonical → aliases
FINANCIAL_SYNONYMS: dict[str, list[str]] = {
    "dinero": ["plata", "guita"],
    "egresos": ["salidas", "erogaciones", "desembolsos"],
    "ingresos": ["entradas", "cobranzas", "cobros"],
    "balance": ["saldo", "estado de cuenta", "resultado neto"],
    "flujo de caja": ["cashflow", "cash flow", "flujo de fondos"],
    "dólares": ["dolares", "verdes", "billetes verdes"],
    "pesos": ["mangos"],
    "personal": ["empleados", "obreros", "trabajadores"],
    "subcontratista": ["contratista", "subcontratado"],
    "socios": ["inversores", "accionistas"],
    "proveedor": ["corralón", "corralon"],
}

# regional variant → neutral form
REGIONAL_VARIANTS: dict[str, str] = {
    "lana": "dinero",
    "pasta": "dinero",
    "laburo": "trabajo",
    "chamba": "trabajo",
    "cartera": "billetera",
    "monedero": "billetera",
    "rubro": "categoría",
    "quincena": "pago quincenal",
}

STOP_WORDS: frozenset[str] = frozenset({
    # Spanish
    "que", "qué", "cual", "cuál", "cuales", "cuáles", "como", "cómo", "donde",
    "dónde", "cuando", "cuándo", "el", "la", "los", "las", "un", "una", "unos",
    "unas", "del", "al", "de", "en", "para", "por", "con", "sin", "sobre",
    "entre", "hasta", "desde", "este", "esta", "estos", "estas", "ese", "esa",
    "esos", "esas", "mis", "tus", "sus", "nuestro", "nuestra", "nuestros",
    "nuestras", "muy", "mas", "más", "pero", "porque", "hay", "fue", "fueron",
    "ser", "son", "tengo", "tiene", "tenemos", "me", "mi", "tu", "su", "se",
    "le", "les", "lo", "nos", "todo", "todos", "toda", "todas", "y", "o",
    # English
    "the", "and", "for", "with", "what", "which", "how", "when", "where",
    "this", "that", "these", "those", "from", "our", "your", "are", "was",
    "were", "have", "has", "did", "does",
})

_LEADING_ARTICLES = frozenset({"el", "la", "los", "las", "the"})
_NON_LETTER_RE = re.compile(r"[^a-záéíóúüñ\s]")
_WORD_SPLIT_RE = re.compile(r"[^\w]+|_")


def _word_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", re.IGNORECASE)


_ABBREVIATION_PATTERNS = [
    (re.compile(pattern, re.IGNORECASE), replacement)
    for pattern, replacement in ABBREVIATIONS
]
# Longest aliases first so "billetes verdes" wins over "verdes"
_SYNONYM_PATTERNS = sorted(
    (
        (_word_pattern(alias), canonical, len(alias))
        for canonical, aliases in FINANCIAL_SYNONYMS.items()
        for alias in aliases
    ),
    key=lambda item: -item[2],
)
_REGIONAL_PATTERNS = [
    (_word_pattern(variant), neutral) for variant, neutral in REGIONAL_VARIANTS.items()
]


# ── Expansion ───────────────────────────────────────────────────────

def expand_with_synonyms(text: str) -> str:
    """
    Rewrite ``text`` with canonical vocabulary.  Best-effort: text with
    no known terms comes back unchanged (modulo whitespace).
    """
    expanded = text or ""
    for pattern, replacement in _ABBREVIATION_PATTERNS:
        expanded = pattern.sub(replacement, expanded)
    for pattern, canonical, _ in _SYNONYM_PATTERNS:
        expanded = pattern.sub(canonical, expanded)
    for pattern, neutral in _REGIONAL_PATTERNS:
        expanded = pattern.sub(neutral, expanded)
    return clean_whitespace(expanded)


def extract_key_terms(text: str) -> list[str]:
    """
    Bag of meaningful terms used for keyword scoring.

    Lower-cases, expands synonyms, drops punctuation/digits, stop words
    and tokens of two characters or fewer.  First-seen order is kept.
    """
    expanded = expand_with_synonyms((text or "").lower()).lower()
    letters_only = _NON_LETTER_RE.sub(" ", expanded)
    terms: list[str] = []
    seen: set[str] = set()
    for token in letters_only.split():
        if len(token) <= 2 or token in STOP_WORDS or token in seen:
            continue
        seen.add(token)
        terms.append(token)
    return terms


def generate_entity_variants(name: str) -> list[str]:
    """
    Shorter forms of an entity name for fuzzy matching.

    "Edificio Torre-Norte" → ["edificio torre norte", "edificio torre",
    "edificio", "norte"]
    """
    words = [w for w in _WORD_SPLIT_RE.split((name or "").lower()) if w]
    if not words:
        return []

    variants = [" ".join(words)]
    if words[0] in _LEADING_ARTICLES and len(words) > 1:
        variants.append(" ".join(words[1:]))
    if len(words) >= 2:
        variants.append(" ".join(words[:2]))
    if len(words) >= 3:
        variants.append(" ".join(words[:3]))
    if len(words[0]) >= 4:
        variants.append(words[0])
    if len(words[-1]) >= 5:
        variants.append(words[-1])

    return list(dict.fromkeys(variants))


# ── Dynamic alias registry ──────────────────────────────────────────

class EntitySynonymRegistry:
    """
    Alias → canonical name map for entity names.

    Lookups are case- and accent-insensitive.  A canonical name always
    resolves to itself, even if another synonym lists it as an alias.
    Created once at process start and shared.  Every write, including
    the read-merge-write of ``learn_alias``, runs under one lock.
    """

    def __init__(self, synonyms: list[EntitySynonym] | None = None):
        self._lock = threading.Lock()
        self._synonyms: dict[str, EntitySynonym] = {}
        self._alias_index: dict[str, str] = {}
        for synonym in synonyms or []:
            self.register(synonym)

    def register(self, synonym: EntitySynonym) -> None:
        """Add or replace a synonym (keyed by its normalized canonical name)."""
        with self._lock:
            self._register_locked(synonym)

    def _register_locked(self, synonym: EntitySynonym) -> None:
        key = normalize_text(synonym.canonical)
        if not key:
            return
        previous = self._synonyms.get(key)
        if previous is not None:
            for alias in previous.aliases:
                self._alias_index.pop(normalize_text(alias), None)
        self._synonyms[key] = synonym
        for alias in synonym.aliases:
            alias_key = normalize_text(alias)
            if alias_key:
                self._alias_index[alias_key] = synonym.canonical

    def learn_alias(
        self,
        canonical: str,
        alias: str,
        entity_type: EntityType | str | None = None,
    ) -> None:
        """Attach one more alias to ``canonical``, creating it if needed."""
        with self._lock:
            existing = self._synonyms.get(normalize_text(canonical))
            if existing is None:
                synonym = EntitySynonym(canonical=canonical, aliases=[alias], entity_type=entity_type)
            else:
                if any(normalize_text(a) == normalize_text(alias) for a in existing.aliases):
                    return
                synonym = existing.model_copy(update={"aliases": [*existing.aliases, alias]})
            self._register_locked(synonym)
        logger.info("[SYNONYMS] Learned alias %r → %r", alias, canonical)

    def resolve(self, alias: str) -> str | None:
        """Canonical name for ``alias`` (or for a canonical name itself), else ``None``."""
        key = normalize_text(alias)
        if not key:
            return None
        with self._lock:
            synonym = self._synonyms.get(key)
            if synonym is not None:
                return synonym.canonical
            return self._alias_index.get(key)

    def get_aliases(self, canonical: str) -> list[str]:
        with self._lock:
            synonym = self._synonyms.get(normalize_text(canonical))
            return list(synonym.aliases) if synonym else []

    def clear(self) -> None:
        with self._lock:
            self._synonyms.clear()
            self._alias_index.clear()

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            synonyms = list(self._synonyms.values())
        by_type: dict[str, int] = defaultdict(int)
        for synonym in synonyms:
            by_type[synonym.entity_type or "untyped"] += 1
        return {
            "total_synonyms": len(synonyms),
            "total_aliases": sum(len(s.aliases) for s in synonyms),
            "by_type": dict(by_type),
        }


# Generic vocabulary people use to refer to entity kinds
DEFAULT_ENTITY_SYNONYMS: list[EntitySynonym] = [
    EntitySynonym(canonical="Caja Chica", aliases=["caja menor", "fondo fijo"], entity_type=EntityType.WALLET),
    EntitySynonym(canonical="Banco", aliases=["cuenta bancaria", "cuenta del banco"], entity_type=EntityType.WALLET),
    EntitySynonym(canonical="Mano de Obra", aliases=["jornales", "sueldos"], entity_type=EntityType.CATEGORY),
    EntitySynonym(canonical="Materiales", aliases=["insumos", "materia prima"], entity_type=EntityType.CATEGORY),
    EntitySynonym(canonical="Honorarios", aliases=["fees", "honorario profesional"], entity_type=EntityType.CATEGORY),
]


def create_default_registry() -> EntitySynonymRegistry:
    """Registry seeded with the default entity vocabulary."""
    return EntitySynonymRegistry(DEFAULT_ENTITY_SYNONYMS)
