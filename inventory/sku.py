"""
SKU codec.

SKUs are derived from product/variant ids: ``P`` + 6 hex chars of the product
digest, optionally ``-V`` + 4 hex chars of the variant digest, e.g.
``P1A2B3C-V9F0E``. The product part only has 24 bits, so two products can
share a SKU; uniqueness is enforced per (sku, location) by the database, and a
collision shows up as a conflict on create.
"""
import hashlib
import re
from typing import Optional

SKU_PATTERN = re.compile(r"P([A-F0-9]{6})(?:-V([A-F0-9]{4}))?")
SKU_MAX_LENGTH = 20


def _digest(value) -> str:
    return hashlib.md5(str(value).encode("utf-8"), usedforsecurity=False).hexdigest().upper()


def generate_sku(product_id, variant_id=None) -> str:
    sku = f"P{_digest(product_id)[:6]}"
    if variant_id:
        sku = f"{sku}-V{_digest(variant_id)[:4]}"
    return sku


def validate_sku(sku: str) -> bool:
    if not isinstance(sku, str):
        return False
    return SKU_PATTERN.fullmatch(sku) is not None


def extract_product_hash(sku: str) -> Optional[str]:
    match = SKU_PATTERN.fullmatch(sku) if isinstance(sku, str) else None
    return match.group(1) if match else None


def extract_variant_hash(sku: str) -> Optional[str]:
    match = SKU_PATTERN.fullmatch(sku) if isinstance(sku, str) else None
    return match.group(2) if match else None


def has_variant(sku: str) -> bool:
    return extract_variant_hash(sku) is not None
