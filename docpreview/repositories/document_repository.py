from typing import Any, Dict, List, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docpreview.database.models import Document
from docpreview.repositories.base_repository import BaseRepository


class DocumentRepository(BaseRepository[Document]):
    """Repository for document metadata rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Document)

    async def find_for_owners(self, document_id: str, owner_ids: Sequence[str]) -> List[Document]:
        """Return every row for ``document_id`` owned by one of ``owner_ids``."""
        if not owner_ids:
            return []
        try:
            query = select(Document).where(
                Document.id == document_id,
                Document.user_id.in_(list(owner_ids)),
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error looking up document {document_id}: {str(e)}", exc_info=True)
            raise

    async def delete_for_owners(self, document_id: str, owner_ids: Sequence[str]) -> int:
        """Delete the caller-visible rows for a document.

        Returns:
            Number of rows deleted
        """
        if not owner_ids:
            return 0
        try:
            result = await self.session.execute(
                delete(Document).where(
                    Document.id == document_id,
                    Document.user_id.in_(list(owner_ids)),
                )
            )
            await self.session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error deleting document {document_id}: {str(e)}", exc_info=True)
            raise

    async def repoint_file_paths(self, dry_run: bool = False) -> int:
        """Point every row's ``file_path`` at its content id (the blob handle).

        Returns:
            Number of rows that needed (or, on a dry run, would need) updating
        """
        rows = await self.get_all()
        stale = [row for row in rows if row.id and row.user_id and row.file_path != row.id]
        if dry_run or not stale:
            return len(stale)

        try:
            for row in stale:
                await self.session.execute(
                    update(Document)
                    .where(Document.id == row.id, Document.user_id == row.user_id)
                    .values(file_path=row.id)
                )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error repointing document file paths: {str(e)}", exc_info=True)
            raise
        return len(stale)

    async def seed_missing(
        self,
        user_id: str,
        candidates: Sequence[Dict[str, Any]],
        dry_run: bool = False,
    ) -> int:
        """Insert rows for candidates that ``user_id`` does not own yet.

        Args:
            user_id: Owner for the seeded rows
            candidates: Dicts with id, name, type, size and last_modified
            dry_run: Count without inserting

        Returns:
            Number of rows inserted (or that would be inserted)
        """
        if not candidates:
            return 0

        existing = {row.id for row in await self.get_all(filters={"user_id": user_id})}
        seen = set()
        to_insert = []
        for candidate in candidates:
            if candidate["id"] in seen:
                continue
            seen.add(candidate["id"])
            if candidate["id"] in existing:
                continue
            to_insert.append(candidate)

        if dry_run or not to_insert:
            return len(to_insert)

        try:
            for candidate in to_insert:
                self.session.add(
                    Document(
                        id=candidate["id"],
                        user_id=user_id,
                        name=candidate["name"],
                        type=candidate["type"],
                        size=candidate["size"],
                        last_modified=candidate["last_modified"],
                        file_path=candidate["id"],
                    )
                )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error seeding document rows for {user_id}: {str(e)}", exc_info=True)
            raise
        return len(to_insert)
