"""Editable static menu configuration."""

from __future__ import annotations

# Prices are decimal strings so that they round-trip exactly into Decimal.
MENU_ITEMS: list[dict[str, str]] = [
    {
        "id": "1",
        "name": "Simit",
        "price": "15.00",
        "category": "Kahvaltılık",
        "image_url": "https://placehold.co/100x100/A020F0/ffffff?text=Simit",
    },
    {
        "id": "2",
        "name": "Çay",
        "price": "10.00",
        "category": "İçecekler",
        "image_url": "https://placehold.co/100x100/FFD700/000000?text=Çay",
    },
    {
        "id": "3",
        "name": "Peynir",
        "price": "25.00",
        "category": "Kahvaltılık",
        "image_url": "https://placehold.co/100x100/4169E1/ffffff?text=Peynir",
    },
    {
        "id": "4",
        "name": "Salam",
        "price": "30.00",
        "category": "Kahvaltılık",
        "image_url": "https://placehold.co/100x100/3CB371/ffffff?text=Salam",
    },
]

PLACEHOLDER_IMAGE_URL = "https://placehold.co/100x100/CCCCCC/333333?text=Ürün"

CATEGORY_STYLES: dict[str, str] = {
    "Kahvaltılık": "bold #ffffff on #b23a48",
    "İçecekler": "bold #0b1f0f on #5fbf72",
}
DEFAULT_CATEGORY_STYLE = "bold #ffffff on #2f6db5"
