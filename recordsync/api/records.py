"""Record CRUD endpoints for online clients."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from recordsync.api.deps import get_owner_id
from recordsync.core.database import get_db
from recordsync.schemas.records import RecordCreate, RecordListResponse, RecordUpdate, RecordView
from recordsync.services.errors import ConstraintViolationError, PayloadValidationError
from recordsync.services.store import SqlAlchemyRecordStore
from recordsync.services.validation import validate_create, validate_update

router = APIRouter(prefix="/api/records", tags=["records"])


@router.post("", response_model=RecordView, status_code=201)
async def create_record(
    payload: RecordCreate,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a record directly, optionally under a client local id."""
    store = SqlAlchemyRecordStore(db)
    values = validate_create(payload.model_dump())
    try:
        return await store.create(owner_id, values, local_id=payload.local_id)
    except ConstraintViolationError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("", response_model=RecordListResponse)
async def list_records(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Page through the owner's live records, most recently captured first."""
    store = SqlAlchemyRecordStore(db)
    records = await store.find_by_owner(owner_id, limit=limit, offset=offset)
    return RecordListResponse(records=records, limit=limit, offset=offset)


@router.get("/{record_id}", response_model=RecordView)
async def get_record(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    record = await SqlAlchemyRecordStore(db).find_by_id(owner_id, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


@router.put("/{record_id}", response_model=RecordView)
async def update_record(
    record_id: str,
    payload: RecordUpdate,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Apply a partial update; only the fields sent are changed."""
    store = SqlAlchemyRecordStore(db)
    try:
        values = validate_update(payload.model_dump(exclude_unset=True))
        record = await store.update(owner_id, record_id, values)
    except PayloadValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    except ConstraintViolationError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


@router.delete("/{record_id}", status_code=204)
async def delete_record(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a record."""
    deleted = await SqlAlchemyRecordStore(db).soft_delete(owner_id, record_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Record not found")
