"""Enquiry repository."""

from collections.abc import Sequence
from datetime import datetime

from crmvault.infrastructure.database.models.enquiry import Enquiry
from crmvault.infrastructure.database.repositories.base import BaseRepository


class EnquiryRepository(BaseRepository[Enquiry]):
    """Repository for enquiries, newest submission first."""

    model_class = Enquiry

    async def list_recent(
        self,
        *,
        since: datetime | None = None,
        limit: int = 100,
    ) -> Sequence[Enquiry]:
        query = self._base_query().order_by(Enquiry.submitted_at.desc()).limit(limit)
        if since is not None:
            query = query.where(Enquiry.submitted_at >= since)
        result = await self.session.execute(query)
        return result.scalars().all()
