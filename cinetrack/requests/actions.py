"""
Request group actions.

The RequestActionExecutor turns an action on a RequestGroup into one batched
mutation of the requests collection, and handles visitor submissions.

Invariants:
    - A group action touches exactly the group's member ids
    - A mixed actioned/un-actioned group is never reported as success
    - The executor keeps no local view; state arrives via subscriptions

Atomicity:
    On stores with atomic batches a failed batch leaves nothing changed and
    is reported as MutationError. On stores without them, a partially applied
    batch is completed by retrying the remainder; if that fails the applied
    part is compensated (prior values restored, deleted documents
    re-inserted with their original ids). If compensation fails too the
    caller gets PartialMutationError naming the documents left behind.

How to change safely:
    - Capture prior state before writing whenever compensation may be needed
    - Keep every new action expressed as a single batch
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from ..context import AppContext
from ..errors import (
    AuthenticationError,
    InvalidGroupError,
    MutationError,
    PartialMutationError,
    ValidationError,
)
from ..store import BatchWriteError, Document, StoreError
from .models import RequestGroup, to_millis

logger = logging.getLogger(__name__)


class RequestActionExecutor:
    """Applies visitor and administrator actions to the requests collection.

    Example:
        >>> executor = RequestActionExecutor(context)
        >>> await executor.submit_request("Dune", requested_by="visitor-1")
        >>> new_state = await executor.toggle_actioned(group)
        >>> deleted = await executor.delete_group(group)
    """

    def __init__(self, context: AppContext, max_retries: int | None = None) -> None:
        """Initialize the executor.

        Args:
            context: Application context
            max_retries: Override for ActionConfig.max_retries
        """
        self.context = context
        self.store = context.store
        self.collection = context.requests_path
        self.max_retries = (
            context.config.actions.max_retries if max_retries is None else max_retries
        )

    async def submit_request(
        self,
        movie_title: str,
        requested_by: str,
        requested_at: datetime | None = None,
    ) -> str:
        """Record a visitor's request for a title.

        Returns:
            The new request id

        Raises:
            ValidationError: If the title is empty
            AuthenticationError: If there is no visitor id
            MutationError: If the store rejects the insert
        """
        if not isinstance(movie_title, str) or not movie_title:
            raise ValidationError("A title is required", field_name="movie_title")
        if not requested_by:
            raise AuthenticationError("User not authenticated.")

        data = {
            "movie_title": movie_title,
            "requested_at": to_millis(requested_at)
            if requested_at
            else int(time.time() * 1000),
            "requested_by": requested_by,
            "action_taken": False,
        }

        try:
            doc_id = await self.store.insert(self.collection, data)
        except StoreError as e:
            logger.error(f"Error adding request: {e}", extra={"movie_title": movie_title})
            raise MutationError("Failed to add request.", "submit_request") from e

        logger.info(
            "Request submitted",
            extra={"movie_title": movie_title, "requested_by": requested_by, "doc_id": doc_id},
        )
        return doc_id

    async def toggle_actioned(self, group: RequestGroup) -> bool:
        """Flip every member of a group to ``not group.all_actioned``.

        Returns:
            The new action state

        Raises:
            InvalidGroupError: If the group is empty or malformed
            MutationError: If the update failed and nothing changed
            PartialMutationError: If members were left in mixed state
        """
        member_ids = self._check_group(group)
        new_state = not group.all_actioned
        prior = await self._capture_prior(member_ids, "toggle_actioned")

        patches = [(doc_id, {"action_taken": new_state}) for doc_id in member_ids]
        await self._run_update(patches, prior, "toggle_actioned")

        logger.info(
            "Request group action toggled",
            extra={
                "movie_title": group.movie_title,
                "action_taken": new_state,
                "count": len(member_ids),
            },
        )
        return new_state

    async def delete_group(self, group: RequestGroup) -> int:
        """Delete every member of a group.

        Returns:
            Number of deleted request documents

        Raises:
            InvalidGroupError: If the group is empty or malformed
            MutationError: If the delete failed and nothing changed
            PartialMutationError: If some members could not be restored
        """
        member_ids = self._check_group(group)
        prior = await self._capture_prior(member_ids, "delete_group")

        deleted = await self._run_delete(member_ids, prior)

        logger.info(
            "Request group deleted",
            extra={"movie_title": group.movie_title, "count": deleted},
        )
        return deleted

    @staticmethod
    def _check_group(group: RequestGroup) -> list[str]:
        if not isinstance(group, RequestGroup):
            raise InvalidGroupError(f"Expected RequestGroup, got {type(group).__name__}")
        if not group.member_ids:
            raise InvalidGroupError("Request group has no members", group.movie_title)
        if len(set(group.member_ids)) != len(group.member_ids):
            raise InvalidGroupError("Request group lists a member twice", group.movie_title)
        if len(group.requester_ids) != len(group.member_ids):
            raise InvalidGroupError(
                "Request group requester list does not match its members",
                group.movie_title,
            )
        return list(group.member_ids)

    async def _capture_prior(
        self,
        member_ids: Sequence[str],
        operation: str,
    ) -> dict[str, Document]:
        """Snapshot member documents when compensation may be needed."""
        if self.store.atomic_batches:
            return {}
        wanted = set(member_ids)
        try:
            snapshot = await self.store.query_once(self.collection)
        except StoreError as e:
            raise MutationError(f"{operation} failed: {e}", operation, list(member_ids)) from e
        return {doc.id: doc for doc in snapshot if doc.id in wanted}

    async def _run_update(
        self,
        patches: list[tuple[str, dict[str, Any]]],
        prior: dict[str, Document],
        operation: str,
    ) -> None:
        all_ids = [doc_id for doc_id, _ in patches]
        try:
            await self.store.batched_update(self.collection, patches)
            return
        except BatchWriteError as e:
            if not e.partial:
                raise MutationError(f"{operation} failed: {e}", operation, all_ids) from e
            error: Exception = e
            applied = list(e.applied_ids)
        except StoreError as e:
            raise MutationError(f"{operation} failed: {e}", operation, all_ids) from e

        remaining = [p for p in patches if p[0] not in set(applied)]
        for attempt in range(1, self.max_retries + 1):
            logger.warning(
                f"Batch partially applied, retrying remainder (attempt {attempt})",
                extra={"operation": operation, "applied": len(applied), "remaining": len(remaining)},
            )
            try:
                await self.store.batched_update(self.collection, remaining)
                return
            except BatchWriteError as e:
                applied.extend(e.applied_ids)
                remaining = [p for p in remaining if p[0] not in set(e.applied_ids)]
                error = e
            except StoreError as e:
                error = e

        rollback: list[tuple[str, dict[str, Any]]] = []
        unrecoverable: list[str] = []
        for doc_id in applied:
            if doc_id in prior:
                rollback.append((doc_id, {"action_taken": prior[doc_id].get("action_taken")}))
            else:
                unrecoverable.append(doc_id)

        try:
            if rollback:
                await self.store.batched_update(self.collection, rollback)
        except StoreError as e:
            restored = set(e.applied_ids) if isinstance(e, BatchWriteError) else set()
            unrecoverable.extend(doc_id for doc_id, _ in rollback if doc_id not in restored)

        pending = [doc_id for doc_id, _ in remaining]
        if unrecoverable:
            logger.error(
                "Batch rollback failed, request group left in mixed state",
                extra={"operation": operation, "applied_ids": unrecoverable},
            )
            raise PartialMutationError(
                f"{operation} partially applied and could not be rolled back: {error}",
                operation,
                applied_ids=unrecoverable,
                pending_ids=pending,
            )

        logger.warning("Batch rolled back after partial failure", extra={"operation": operation})
        raise MutationError(f"{operation} failed and was rolled back: {error}", operation, all_ids)

    async def _run_delete(
        self,
        member_ids: list[str],
        prior: dict[str, Document],
    ) -> int:
        operation = "delete_group"
        try:
            return await self.store.batched_delete(self.collection, member_ids)
        except BatchWriteError as e:
            if not e.partial:
                raise MutationError(f"{operation} failed: {e}", operation, member_ids) from e
            error: Exception = e
            applied = list(e.applied_ids)
        except StoreError as e:
            raise MutationError(f"{operation} failed: {e}", operation, member_ids) from e

        remaining = [doc_id for doc_id in member_ids if doc_id not in set(applied)]
        for attempt in range(1, self.max_retries + 1):
            logger.warning(
                f"Batch delete partially applied, retrying remainder (attempt {attempt})",
                extra={"applied": len(applied), "remaining": len(remaining)},
            )
            try:
                deleted = await self.store.batched_delete(self.collection, remaining)
                return len(applied) + deleted
            except BatchWriteError as e:
                applied.extend(e.applied_ids)
                remaining = [doc_id for doc_id in remaining if doc_id not in set(e.applied_ids)]
                error = e
            except StoreError as e:
                error = e

        unrecoverable: list[str] = []
        for doc_id in applied:
            document = prior.get(doc_id)
            if document is None:
                unrecoverable.append(doc_id)
                continue
            try:
                await self.store.insert(self.collection, dict(document.data), doc_id=doc_id)
            except StoreError:
                unrecoverable.append(doc_id)

        if unrecoverable:
            logger.error(
                "Batch delete rollback failed, request group partially deleted",
                extra={"applied_ids": unrecoverable},
            )
            raise PartialMutationError(
                f"{operation} partially applied and could not be rolled back: {error}",
                operation,
                applied_ids=unrecoverable,
                pending_ids=remaining,
            )

        logger.warning("Batch delete rolled back after partial failure")
        raise MutationError(f"{operation} failed and was rolled back: {error}", operation, member_ids)
