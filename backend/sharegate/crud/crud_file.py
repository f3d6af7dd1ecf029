from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from sharegate.crud.base import CRUDBase
from sharegate.models.file import File
from sharegate.models.download import DownloadLog
from sharegate.models.share_link import ShareLink
from sharegate.schemas.file import FileCreate, FileBase
from sharegate.utils.time_utils import utcnow

class CRUDFile(CRUDBase[File, FileCreate, FileBase]):
    def create_with_owner(
        self, db: Session, *, obj_in: FileCreate, user_id: int
    ) -> File:
        now = utcnow()
        db_obj = File(
            user_id=user_id,
            filename=obj_in.filename,
            original_filename=obj_in.original_filename,
            file_size=obj_in.file_size,
            content_type=obj_in.content_type,
            storage_path=obj_in.storage_path,
            is_encrypted=obj_in.is_encrypted,
            created_at=now,
            updated_at=now
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_multi_by_owner(
        self, db: Session, *, user_id: int, skip: int = 0, limit: int = 100
    ) -> List[File]:
        return (
            db.query(File)
            .options(selectinload(File.share_links))
            .filter(File.user_id == user_id)
            .order_by(File.created_at.desc(), File.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_by_owner(self, db: Session, *, user_id: int) -> int:
        return db.query(File).filter(File.user_id == user_id).count()

    def get_for_owner(self, db: Session, *, id: int, user_id: int) -> Optional[File]:
        return db.query(File).filter(File.id == id, File.user_id == user_id).first()

    def get_download_logs(self, db: Session, *, file_id: int, skip: int = 0, limit: int = 100) -> List[DownloadLog]:
        return (
            db.query(DownloadLog)
            .join(ShareLink, ShareLink.id == DownloadLog.share_link_id)
            .filter(ShareLink.file_id == file_id)
            .order_by(DownloadLog.downloaded_at.desc(), DownloadLog.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

file = CRUDFile(File)
