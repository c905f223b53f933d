import io
import logging

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from studioops.deps import AuthContext, ensure_within_limit, get_current_auth, get_db, require_feature
from studioops.license import LicenseContext
from studioops.models import Member, MemberStatus
from studioops.permissions import can_manage_members
from studioops.schemas import MemberCreate
from studioops.tiers import Feature, Resource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", tags=["import"])


def parse_file(file: UploadFile) -> pd.DataFrame:
    """Parse CSV or Excel file into a pandas DataFrame."""
    contents = file.file.read()
    filename = (file.filename or "").lower()

    if filename.endswith((".xlsx", ".xls")):
        try:
            return pd.read_excel(io.BytesIO(contents), dtype=str)
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Failed to parse Excel file: {str(e)}")

    if filename.endswith(".csv"):
        for encoding in ["utf-8-sig", "latin-1"]:
            try:
                header = contents.decode(encoding).split("\n", 1)[0]
                # Spreadsheets in comma-decimal locales export with ";"
                sep = ";" if ";" in header and "," not in header else ","
                return pd.read_csv(io.BytesIO(contents), encoding=encoding, sep=sep, dtype=str)
            except UnicodeDecodeError:
                continue
            except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                raise HTTPException(status_code=400, detail=f"Failed to parse CSV file: {str(e)}")
        raise HTTPException(status_code=400, detail="Failed to parse CSV file: unsupported encoding")

    raise HTTPException(
        status_code=400,
        detail="Unsupported file type. Please upload a CSV or Excel file (.csv, .xlsx, .xls)"
    )


def _cell(row: pd.Series, column: str):
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    return str(value).strip() or None


@router.post("/members", response_model=dict)
def import_members(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
    license_ctx: LicenseContext = Depends(require_feature(Feature.STUDENT_MANAGEMENT)),
):
    """Import members from CSV or Excel file.

    Expected columns:
    - name (required)
    - email (optional)
    - phone (optional)

    Every imported member is active, so the whole batch has to fit into the
    member headcount quota; otherwise nothing is written.
    """
    if not can_manage_members(auth):
        raise HTTPException(status_code=403, detail="Insufficient permissions to import members")

    df = parse_file(file)
    df.columns = df.columns.str.strip().str.lower()

    if "name" not in df.columns:
        raise HTTPException(status_code=400, detail="Missing required column: 'name'")

    valid = []
    errors = []
    for idx, row in df.iterrows():
        # +2: idx is 0-based and the header is row 1
        line = idx + 2
        try:
            valid.append(MemberCreate(
                name=_cell(row, "name") or "",
                email=_cell(row, "email"),
                phone=_cell(row, "phone"),
            ))
        except ValidationError as e:
            errors.append({"row": line, "error": "; ".join(err["msg"] for err in e.errors())})

    if valid:
        ensure_within_limit(db, license_ctx, Resource.MEMBERS, count=len(valid))

    members = [
        Member(
            org_id=auth.org_id,
            name=data.name,
            email=data.email,
            phone=data.phone,
            status=MemberStatus.ACTIVE,
        )
        for data in valid
    ]
    db.add_all(members)
    db.flush()
    created = [{"id": member.id, "name": member.name} for member in members]

    db.commit()
    logger.info(f"Imported {len(created)} members into org {auth.org_id} ({len(errors)} rows rejected)")

    return {
        "success": True,
        "created_count": len(created),
        "error_count": len(errors),
        "created": created,
        "errors": errors,
    }
