import regex as re

# ---------- OCR / crawled-text repair ----------
# Wiki-style [bracketed] annotations carry no problem content.
MARKUP_FIX = (
    (re.compile(r"\[[^\[\]]*\]"), ""),
)
# Keep LaTeX bodies, drop the $$ / $ delimiters.
LATEX_FIX = (
    (re.compile(r"\$\$(.*?)\$\$", re.S), r"\1"),
    (re.compile(r"\$(.*?)\$", re.S), r"\1"),
)
SPACE_FIX = (
    (re.compile(r"\s+"), " "),
)


def clean_text(text: str) -> str:
    """Strip markup and math delimiters, collapse whitespace."""
    if not text:
        return ""
    out = text.replace("“", '"').replace("”", '"').replace("’", "'").replace("‘", "'")
    for rx, rep in MARKUP_FIX:
        out = rx.sub(rep, out)
    for rx, rep in LATEX_FIX:
        out = rx.sub(rep, out)
    for rx, rep in SPACE_FIX:
        out = rx.sub(rep, out)
    return out.strip()
