"""Card image compositing.

Exports are lazily loaded so `python -m reskin.cards.composite` runs
without importing the rest of the package first.
"""

__all__ = [
    # composite.py
    "CardCompositor",
    "UnsupportedLayoutError",
    "ART_RECT",
    "TITLE_RECT",
    # sources.py
    "CardComposer",
    "load_image_bytes",
]


def __getattr__(name: str):
    """Lazy import for module exports."""
    if name in ("CardCompositor", "UnsupportedLayoutError", "ART_RECT", "TITLE_RECT"):
        from reskin.cards import composite
        return getattr(composite, name)
    elif name in ("CardComposer", "load_image_bytes"):
        from reskin.cards import sources
        return getattr(sources, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
