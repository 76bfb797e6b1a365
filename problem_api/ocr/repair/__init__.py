from .normalize import clean_text

__all__ = [
    "clean_text",
]
