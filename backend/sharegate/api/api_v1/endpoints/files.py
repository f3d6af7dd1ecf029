import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from sharegate import crud, models, schemas
from sharegate.api import deps
from sharegate.core.errors import InternalError, ShareError
from sharegate.services.object_store import ObjectStore, ObjectStoreError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=schemas.File, status_code=status.HTTP_201_CREATED)
def register_file(
        *,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        file_in: schemas.FileCreate,
) -> Any:
    """
    Register an object already written to the blob store and create its
    first share link. A file is never left registered without a link.
    """
    file = crud.file.create_with_owner(db, obj_in=file_in, user_id=current_user.id)
    try:
        crud.share_link.create_with_fresh_token(db, file_id=file.id, obj_in=file_in.share)
    except ShareError:
        crud.file.remove(db, id=file.id)
        raise
    db.refresh(file)
    return file


@router.get("", response_model=schemas.FileList)
def read_files(
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        skip: int = 0,
        limit: int = 100,
) -> Any:
    files = crud.file.get_multi_by_owner(db, user_id=current_user.id, skip=skip, limit=limit)
    return {"items": files, "total": crud.file.count_by_owner(db, user_id=current_user.id)}


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
        *,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        object_store: ObjectStore = Depends(deps.get_object_store),
        file_id: int,
) -> None:
    """
    Delete the stored object first, then the file row. Share links and their
    download logs go with the row.
    """
    file = crud.file.get_for_owner(db, id=file_id, user_id=current_user.id)
    if not file:
        raise HTTPException(status_code=404, detail="File not found")

    try:
        object_store.remove(file.storage_path)
    except ObjectStoreError as e:
        raise InternalError(f"Failed to delete file {file_id} from storage: {e}", original_error=e) from e

    crud.file.remove(db, id=file.id)
    logger.info("File %s deleted by user %s", file_id, current_user.id)


@router.get("/{file_id}/downloads", response_model=List[schemas.DownloadLog])
def read_file_downloads(
        *,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        file_id: int,
        skip: int = 0,
        limit: int = 100,
) -> Any:
    file = crud.file.get_for_owner(db, id=file_id, user_id=current_user.id)
    if not file:
        raise HTTPException(status_code=404, detail="File not found")
    return crud.file.get_download_logs(db, file_id=file.id, skip=skip, limit=limit)
