import re

import config

UPLOADS_PROXY = "/api-uploads/"


def format_price(value: float, currency: str = config.CURRENCY) -> str:
    return f"{currency} {value:.2f}"


def format_status(status: str) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in status.split("_"))


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def format_phone(phone: str) -> str:
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return phone


def format_percentage(value: float, total: float) -> str:
    if total == 0:
        return "0%"
    # half up
    return f"{int(value / total * 100 + 0.5)}%"


def normalize_image_url(url: str) -> str:
    """Point backend upload paths at the uploads proxy; external URLs pass through."""
    if not url:
        return url
    if url.startswith("/uploads/") or url.startswith("uploads/"):
        return UPLOADS_PROXY + url.lstrip("/")[len("uploads/"):]
    if "localhost:5000/uploads/" in url or "10.0.2.2:5000/uploads/" in url:
        return UPLOADS_PROXY + url.split("/uploads/", 1)[1]
    return url
