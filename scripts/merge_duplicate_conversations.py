#!/usr/bin/env python3
"""
Merge legacy duplicate conversation documents.

Groups every conversation by its canonical participant pair (participants
resolved through any identifier variant), folds the messages of duplicates
into the primary document and deletes the rest.

Reads already merge duplicates on the fly, so running this is optional.
Dry run by default; pass --apply to write.

Usage:
    python scripts/merge_duplicate_conversations.py [--apply]
"""
import argparse
import asyncio
import sys
from typing import Dict, List

from sqlalchemy import select

from trave_social.core.database import AsyncSessionLocal, engine
from trave_social.models.conversation import Conversation
from trave_social.repositories.conversation_repo import ConversationRepository
from trave_social.services.conversation_service import (
    ConversationService,
    merge_messages,
    refresh_summary,
)
from trave_social.services.identity_service import IdentityService
from trave_social.utils.helpers import canonical_key, unique_ordered


def canonical_members(values: List[str], identities: Dict[str, object]) -> List[str]:
    """Map membership entries to canonical ids, keeping unknown ones as-is."""
    return unique_ordered([
        identities[value].canonical_id if value in identities else value
        for value in values
    ])


async def merge_duplicates(apply: bool) -> int:
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Conversation))
        documents = list(result.scalars().all())
        print(f"📊 Total conversations: {len(documents)}")

        identity = IdentityService(db)
        references = set()
        for document in documents:
            references.update(document.participants)
            references.update(document.archived_by or [])
            references.update(document.deleted_by or [])
        identities = await identity.resolve_many(references)

        groups: Dict[str, List[Conversation]] = {}
        for document in documents:
            first = identities.get(document.participant_one_id)
            second = identities.get(document.participant_two_id)
            if first is None or second is None or first.canonical_id == second.canonical_id:
                print(f"⚠️  Skipping conversation with unknown or identical participants: {document.id}")
                continue
            key = canonical_key(first.canonical_id, second.canonical_id)
            groups.setdefault(key, []).append(document)

        duplicates = {key: group for key, group in groups.items() if len(group) > 1}
        print(f"🔍 {len(groups)} participant pairs, {len(duplicates)} with duplicates")

        repo = ConversationRepository(db)
        removed = 0
        for key, group in duplicates.items():
            group = ConversationService._order_documents(group, key)
            primary, rest = group[0], group[1:]
            merged = merge_messages(group, include_deleted=True)
            before = sum(len(document.messages or []) for document in group)
            print(
                f"🔄 {key}: keeping {primary.id}, removing {[document.id for document in rest]} "
                f"({before} → {len(merged)} messages)"
            )
            if not apply:
                continue

            archived_by: List[str] = []
            deleted_by: List[str] = []
            for document in group:
                archived_by.extend(document.archived_by or [])
                deleted_by.extend(document.deleted_by or [])

            for document in rest:
                await repo.delete(document.id)
                removed += 1
            # The unique key may have lived on a removed duplicate
            await db.flush()

            primary.conversation_key = key
            primary.participant_one_id, primary.participant_two_id = sorted((
                identities[primary.participant_one_id].canonical_id,
                identities[primary.participant_two_id].canonical_id,
            ))
            primary.messages = merged
            primary.archived_by = canonical_members(archived_by, identities)
            primary.deleted_by = canonical_members(deleted_by, identities)
            refresh_summary(primary)
            await repo.save(primary, "messages", "archived_by", "deleted_by")

        if apply:
            await db.commit()
            print(f"✅ Removed {removed} duplicate document(s)")
        else:
            print("ℹ️  Dry run, nothing written. Re-run with --apply to merge.")

    await engine.dispose()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Merge legacy duplicate conversations")
    parser.add_argument("--apply", action="store_true", help="Write the merge (default: dry run)")
    args = parser.parse_args()
    return asyncio.run(merge_duplicates(args.apply))


if __name__ == "__main__":
    sys.exit(main())
