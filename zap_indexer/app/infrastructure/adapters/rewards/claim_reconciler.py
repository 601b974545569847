from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from zap_indexer.app.domain.models import ClaimRecord
from zap_indexer.app.infrastructure.db.models.rewards.claims import ClaimsDB
from zap_indexer.app.infrastructure.db.models.rewards.distributions import DistributionsDB
from zap_indexer.app.infrastructure.db.statements import insert_ignore, to_int, to_numeric

logger = logging.getLogger(__name__)


class SqlAlchemyClaimReconciler:
    """
    Matches Claimed events against computed distributions.

    Runs on the ingestion transaction's connection so the claim row and the
    chain event status commit together.
    """

    async def reconcile(self, conn: AsyncConnection, claim: ClaimRecord) -> bool:
        stmt = select(DistributionsDB.amount).where(
            DistributionsDB.distributor_address == claim.distributor_address,
            DistributionsDB.epoch_number == claim.epoch_number,
            DistributionsDB.address_hex == claim.initiator_address,
        )
        allocated = (await conn.execute(stmt)).scalar_one_or_none()

        if allocated is None:
            logger.error(
                "Orphan claim: no distribution for distributor=%s epoch=%s address=%s tx=%s",
                claim.distributor_address,
                claim.epoch_number,
                claim.initiator_address,
                claim.transaction_hash,
            )
            return False

        if to_int(allocated) != claim.amount:
            logger.error(
                "Claim amount mismatch: distributor=%s epoch=%s address=%s claimed=%s allocated=%s tx=%s",
                claim.distributor_address,
                claim.epoch_number,
                claim.initiator_address,
                claim.amount,
                to_int(allocated),
                claim.transaction_hash,
            )
            return False

        insert_stmt = insert_ignore(
            conn,
            ClaimsDB,
            index_elements=["distributor_address", "epoch_number", "initiator_address"],
        ).values(
            transaction_hash=claim.transaction_hash,
            event_sequence=claim.event_sequence,
            block_height=claim.block_height,
            block_timestamp=claim.block_timestamp,
            distributor_address=claim.distributor_address,
            epoch_number=claim.epoch_number,
            initiator_address=claim.initiator_address,
            amount=to_numeric(claim.amount),
        )
        result = await conn.execute(insert_stmt)
        if result.rowcount == 0:
            logger.info(
                "Duplicate claim ignored: distributor=%s epoch=%s address=%s tx=%s",
                claim.distributor_address,
                claim.epoch_number,
                claim.initiator_address,
                claim.transaction_hash,
            )
        return True
