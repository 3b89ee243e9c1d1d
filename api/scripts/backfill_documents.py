from sqlmodel import Session, col, select

from baa.db import engine
from baa.documents import render_and_store
from baa.errors import DependencyFailure
from baa.models import Agreement


with Session(engine) as session:
    pending = session.exec(
        select(Agreement.id).where(
            col(Agreement.vendor_signed_at).is_not(None),
            col(Agreement.document_key).is_(None),
        )
    ).all()
    for agreement_id in pending:
        try:
            key = render_and_store(session, agreement_id)
        except DependencyFailure as exc:
            print(f"Agreement {agreement_id}: {exc}")
            continue
        print(f"Agreement {agreement_id} -> {key}")
