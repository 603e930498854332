from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from urllib.parse import unquote
from mandal.db.base import get_db
from mandal.core.dependencies import get_current_active_user, get_image_storage
from mandal.models.user import User
from mandal.models.contribution import Contribution
from mandal.models.loan import Loan, LoanInstallment
from mandal.services.rbac import Actor, Resource, is_allowed, VIEW_PROOF
from mandal.services.storage import PROOF_URL_PREFIX

router = APIRouter(prefix="/api/proofs", tags=["proofs"])

MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def _proof_owner(db: Session, url: str):
    row = db.query(Contribution.member_id).filter(Contribution.proof_url == url).first()
    if row:
        return row[0]
    row = db.query(Loan.member_id).join(LoanInstallment, LoanInstallment.loan_id == Loan.id).filter(
        LoanInstallment.proof_url == url
    ).first()
    return row[0] if row else None


@router.get("/{filename:path}")
def get_proof_file(
    filename: str,
    current_user: User = Depends(get_current_active_user),
    storage=Depends(get_image_storage),
    db: Session = Depends(get_db)
):
    """Serve a payment slip to the member who uploaded it or to an admin."""
    url = f"{PROOF_URL_PREFIX}{unquote(filename)}"
    owner_id = _proof_owner(db, url)
    if not is_allowed(Actor.from_user(current_user), VIEW_PROOF, Resource(owner_id=owner_id)):
        raise HTTPException(status_code=404, detail="File not found")

    file_path = storage.resolve(url)
    if file_path is None:
        raise HTTPException(status_code=404, detail="File not found")

    media_type = MEDIA_TYPES.get(file_path.suffix.lower(), "application/octet-stream")
    return FileResponse(path=str(file_path), filename=file_path.name, media_type=media_type)
