import html

import bleach


def plain_text(value) -> str:
    """Free text with every tag stripped, stored unescaped (``&`` stays ``&``)."""
    return html.unescape(bleach.clean(str(value or '').strip(), tags=set(), strip=True)).strip()
