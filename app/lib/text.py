from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(value: str) -> str:
    """Valida e normaliza email (lowercase, sem espaços). Levanta ValueError se inválido."""
    email = (value or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValueError("E-mail deve ser um e-mail válido")
    return email


def only_digits(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def format_phone_br(phone: str) -> str:
    """
    Formata telefone para o padrão do WhatsApp: só dígitos, com DDI 55
    quando o número vier só com DDD + número (10 ou 11 dígitos).
    """
    digits = only_digits(phone)
    if len(digits) in (10, 11):
        return f"55{digits}"
    return digits


def slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", normalized).strip("-").lower()
    return slug or "empresa"


def next_sequential_code(prefix: str, last_code: str | None, width: int = 6) -> str:
    """
    Próximo código sequencial por tenant: V000001, OS000002...
    `last_code` é o maior código já emitido (ou None).
    """
    last_number = 0
    if last_code and last_code.startswith(prefix):
        suffix = last_code[len(prefix):]
        if suffix.isdigit():
            last_number = int(suffix)
    return f"{prefix}{last_number + 1:0{width}d}"


def round_money(value: float) -> float:
    return round(float(value or 0), 2)


def isoformat_utc(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        # SQLite devolve datetime sem tzinfo; todos os timestamps são gravados em UTC.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def ensure_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_today(zone: ZoneInfo, now: datetime | None = None) -> date:
    """Data de hoje no fuso da empresa."""
    return ensure_utc(now or datetime.now(timezone.utc)).astimezone(zone).date()


def local_day_start_utc(day: date, zone: ZoneInfo) -> datetime:
    """Meia-noite de `day` no fuso da empresa, convertida para UTC (como gravado no banco)."""
    return datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)
