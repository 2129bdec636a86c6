import base64, binascii, hashlib, json
from datetime import datetime, timezone

from .errors import SignatureDecodeError

DATA_URI_PREFIX = "data:image/"


def is_image_data_uri(value) -> bool:
    return isinstance(value, str) and value.startswith(DATA_URI_PREFIX)


def split_data_uri(data_url: str) -> tuple[str, bytes]:
    # expects "data:image/png;base64,....."
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith(DATA_URI_PREFIX):
        raise SignatureDecodeError("value is not an image data URI")
    mime = header[len("data:"):].split(";", 1)[0].lower()
    try:
        return mime, base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise SignatureDecodeError(f"invalid base64 payload for {mime}") from exc


def sha256_bytes(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()


def canonical_json(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


def pdf_date(moment: datetime | None = None) -> str:
    """Format *moment* (default now, UTC) as a PDF date string."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    offset = moment.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return moment.strftime("D:%Y%m%d%H%M%S") + f"{sign}{hours:02d}'{mins:02d}'"


def winansi(text) -> str:
    # standard PDF fonts only carry the WinAnsi (cp1252) repertoire
    return str(text).encode("cp1252", "replace").decode("cp1252")
