from urllib.parse import urlparse


def card_id_from_ref(ref: str) -> str:
    """
    Return the Trello card id (or short link) for a card reference.

    References are usually card URLs such as
    ``https://trello.com/c/AbCd1234/42-fix-login``; the id is the path
    segment after ``/c/``. Any other URL yields its last non-empty path
    segment, and a bare reference (``AbCd1234``) is used as-is.
    """
    ref = (ref or "").strip()
    if "/" not in ref:
        return ref

    path = urlparse(ref).path if "://" in ref else ref
    segments = [s for s in path.split("/") if s]
    if not segments:
        return ""
    if "c" in segments:
        idx = segments.index("c")
        if idx + 1 < len(segments):
            return segments[idx + 1]
    return segments[-1]


def find_list_by_name(lists, name):
    """Return the first list whose name equals name exactly (case-sensitive), or None."""
    for lst in lists or []:
        if lst.get("name") == name:
            return lst
    return None
