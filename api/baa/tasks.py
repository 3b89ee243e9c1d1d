from celery import Celery
from sqlmodel import Session

from . import db
from .config import REDIS_URL, WORKER_QUEUE
from .documents import render_and_store
from .errors import DependencyFailure

cel = Celery("baa", broker=REDIS_URL, backend=REDIS_URL)


@cel.task(
    name="render_agreement_document",
    queue=WORKER_QUEUE,
    autoretry_for=(DependencyFailure,),
    retry_backoff=True,
    max_retries=5,
)
def render_agreement_document(agreement_id: int):
    with Session(db.engine) as session:
        key = render_and_store(session, agreement_id)
    return {"agreement_id": agreement_id, "document_key": key}
