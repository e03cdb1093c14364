from typing import Tuple


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


def normalize_drug_name(name: str) -> str:
    """Lookup key for a drug name: trimmed, lowercased, inner whitespace collapsed."""
    return normalize_text(name)


def canonical_pair(id_a: str, id_b: str) -> Tuple[str, str]:
    """Order two drug ids so (A, B) and (B, A) share one storage key."""
    if id_a == id_b:
        raise ValueError(f"A drug cannot be paired with itself: {id_a}")
    return (id_a, id_b) if id_a < id_b else (id_b, id_a)


def display_key(name_a: str, name_b: str) -> str:
    # Traversal order, not storage order. Same-named drugs collide here.
    return f"{name_a}-{name_b}"
