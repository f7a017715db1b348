"""
Helpers de formato para la UI (contadores, tamaños, textos para compartir).
"""

from __future__ import annotations

from typing import Dict, Optional


def _one_decimal(value: float) -> str:
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text


def format_count(n: int) -> str:
    """
    Formatea un contador de likes/seguidores.

    >>> format_count(999)
    '999'
    >>> format_count(1000)
    '1k'
    >>> format_count(1240)
    '1.2k'
    >>> format_count(15400)
    '15k'
    >>> format_count(2_000_000)
    '2m'
    """
    if n < 1000:
        return str(n)
    if n < 10_000:
        return _one_decimal(n / 1000) + "k"
    if n < 1_000_000:
        # Math.round: .5 redondea hacia arriba
        return str(int(n / 1000 + 0.5)) + "k"
    return _one_decimal(n / 1_000_000) + "m"


def format_file_size(size_in_bytes: int) -> str:
    """Tamaño legible: B, KB, MB o GB con un decimal."""
    if size_in_bytes < 1024:
        return f"{size_in_bytes} B"
    size = size_in_bytes / 1024
    for unit in ("KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def share_payload(url: str, recipe_title: str) -> Dict[str, str]:
    """Datos para compartir una receta (Web Share API o portapapeles)."""
    return {
        "url": url,
        "title": f"{recipe_title} · GitGrub",
        "text": f"Check out this recipe on GitGrub: {recipe_title}",
    }


def initials(display_name: Optional[str]) -> str:
    """Iniciales en mayúscula de un nombre ("Ada Lovelace" -> "AL")."""
    if not display_name:
        return ""
    return "".join(part[0].upper() for part in display_name.split(" ") if part)
