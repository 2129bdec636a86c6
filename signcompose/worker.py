from datetime import datetime, timezone

from celery import Celery
from celery.utils.log import get_task_logger

from . import storage
from .composer import compose_signed_document
from .config import REDIS_URL, WORKER_QUEUE
from .schemas import Document, Signer
from .utils import canonical_json, sha256_bytes

logger = get_task_logger(__name__)

cel = Celery("signcompose", broker=REDIS_URL, backend=REDIS_URL)


def output_keys(document: Document, filename: str, output_key: str | None = None):
    key_pdf = output_key or f"documents/{document.id or 'unsaved'}/final/{filename}"
    return key_pdf, f"{key_pdf}.audit.json"


@cel.task(name="compose_signed_document", queue=WORKER_QUEUE)
def compose_envelope(document: dict, signers: list, output_key: str | None = None):
    doc = Document.model_validate(document)
    signer_models = [Signer.model_validate(s) for s in signers]
    composed = compose_signed_document(doc, signer_models, fetch=storage.fetch_bytes)
    sha_final = sha256_bytes(composed.content)
    audit = canonical_json({
        "document_id": doc.id,
        "filename": composed.filename,
        "signers": [s.email for s in signer_models if s.signed],
        "composed_at": datetime.now(timezone.utc).isoformat(),
        "sha256_final": sha_final,
    })
    key_pdf, key_audit = output_keys(doc, composed.filename, output_key)
    storage.put_bytes(key_pdf, composed.content, "application/pdf")
    storage.put_bytes(key_audit, audit.encode(), "application/json")
    logger.info("Stored %s (%d bytes, sha256 %s)", key_pdf, len(composed.content), sha_final)
    return {"pdf": key_pdf, "audit": key_audit, "filename": composed.filename, "sha256_final": sha_final}
