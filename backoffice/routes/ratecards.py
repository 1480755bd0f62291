from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response

from ..auth.security import get_current_user
from ..deps import get_repositories
from ..document_creator.pdf_builder import render
from ..errors import ValidationError
from ..repositories import Repositories
from ..schemas.auth import User
from ..schemas.files import DeleteOutcome
from ..schemas.ratecards import RateCard, RateCardCreate, RateCardSheet, RateCardUpdate, RateCardUploadResult
from ..services import spreadsheet


router = APIRouter(prefix="/ratecards", tags=["ratecards"])


def _attachment(data: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _read_upload(file: UploadFile) -> bytes:
    data = file.file.read()
    if not data:
        raise ValidationError("Uploaded file is empty")
    return data


@router.get("", response_model=List[RateCard])
def list_ratecards(repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    return repos.ratecards.list()


@router.post("", response_model=RateCard, status_code=201)
def create_ratecard(
    payload: RateCardCreate,
    repos: Repositories = Depends(get_repositories),
    user: User = Depends(get_current_user),
):
    if not payload.created_by:
        payload = payload.model_copy(update={"created_by": user.id})
    return repos.ratecards.create(payload)


# ---------- SPREADSHEETS ----------
@router.get("/template")
def download_template(_=Depends(get_current_user)):
    data, filename = spreadsheet.build_template()
    return _attachment(data, filename, spreadsheet.XLSX_MEDIA_TYPE)


@router.post("/preview", response_model=RateCardSheet)
def preview_workbook(file: UploadFile = File(...), _=Depends(get_current_user)):
    return spreadsheet.parse_preview(_read_upload(file))


@router.post("/import", response_model=RateCard, status_code=201)
def import_workbook(
    file: UploadFile = File(...),
    repos: Repositories = Depends(get_repositories),
    user: User = Depends(get_current_user),
):
    data = _read_upload(file)
    sheet = spreadsheet.parse_preview(data)
    return repos.ratecards.import_sheet(
        sheet,
        created_by=user.id,
        source_filename=file.filename or "source.xlsx",
        source_data=data,
    )


@router.post("/upload", response_model=List[RateCardUploadResult])
def upload_workbook(
    file: UploadFile = File(...),
    repos: Repositories = Depends(get_repositories),
    user: User = Depends(get_current_user),
):
    sheets = spreadsheet.parse_upload(_read_upload(file))
    return repos.ratecards.create_many(sheets, created_by=user.id)


# ---------- SINGLE CARD ----------
@router.get("/{ratecard_id}", response_model=RateCard)
def get_ratecard(ratecard_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    return repos.ratecards.get(ratecard_id)


@router.patch("/{ratecard_id}", response_model=RateCard)
def update_ratecard(
    ratecard_id: str,
    payload: RateCardUpdate,
    repos: Repositories = Depends(get_repositories),
    _=Depends(get_current_user),
):
    return repos.ratecards.update(ratecard_id, payload)


@router.delete("/{ratecard_id}", response_model=DeleteOutcome)
def delete_ratecard(ratecard_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    return repos.ratecards.delete(ratecard_id)


@router.get("/{ratecard_id}/export")
def export_ratecard(ratecard_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    data, filename = spreadsheet.export_rate_card(repos.ratecards.get(ratecard_id))
    return _attachment(data, filename, spreadsheet.XLSX_MEDIA_TYPE)


@router.get("/{ratecard_id}/document")
def ratecard_document(ratecard_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    data, filename = render(repos.ratecards.get(ratecard_id), "ratecard")
    return _attachment(data, filename, "application/pdf")
