import bleach


def clean_text(value) -> str:
    """Strip all markup from user supplied free text."""
    return bleach.clean(str(value or '').strip(), tags=set(), attributes={}, strip=True)
