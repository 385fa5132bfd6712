"""Trello board adapter using the Trello REST API.

This module implements the BoardProvider protocol over ``httpx``:
- Key and token are sent as query parameters, as Trello requires
- Every call has a bounded timeout
- Timeouts, network errors, 429 and 5xx responses are retried with
  exponential backoff; other 4xx responses fail immediately
- Board actions are classified into the tagged action variants
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from ...config.schema import RetryConfig, TrelloConfig
from ...models.action import (
    BoardAction,
    CardMoved,
    CardRenamed,
    CheckItemStateChanged,
    ChecklistAdded,
    CommentAdded,
    DueDateChanged,
    LabelAction,
    MemberAction,
    UnrecognizedAction,
)
from ...models.card import Card, CardAttachment, CardCreate
from ...utils.async_helpers import BoardAPIError, TransientBoardError, create_retry

log = structlog.get_logger()

# Only relevant action types are requested from the board
RELAYED_ACTION_TYPES = (
    "addLabelToCard",
    "removeLabelFromCard",
    "addChecklistToCard",
    "updateCheckItemStateOnCard",
    "addMemberToCard",
    "removeMemberFromCard",
    "updateCard",
    "commentCard",
    "moveCardToBoard",
    "moveCardFromBoard",
)


def parse_timestamp(timestamp_str: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp from the Trello API.

    Args:
        timestamp_str: ISO format timestamp string, usually with a Z suffix.

    Returns:
        Timezone-aware datetime, or None if missing or malformed.
    """
    if not timestamp_str:
        return None

    try:
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        parsed = datetime.fromisoformat(timestamp_str)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_action(data: dict[str, Any]) -> BoardAction:
    """Classify a raw Trello action into one of the action variants.

    Args:
        data: Action JSON as returned by ``GET /boards/{id}/actions``.

    Returns:
        The matching variant, or ``UnrecognizedAction``.
    """
    payload: dict[str, Any] = data.get("data") or {}
    card: dict[str, Any] = payload.get("card") or {}
    old: dict[str, Any] = payload.get("old") or {}
    creator: dict[str, Any] = data.get("memberCreator") or {}
    action_type = data.get("type", "")

    common: dict[str, Any] = {
        "action_id": str(data.get("id", "")),
        "action_type": action_type,
        "date": parse_timestamp(data.get("date")) or datetime.now(UTC),
        "card_id": card.get("id"),
        "card_name": card.get("name") or "Unknown Card",
        "actor_name": creator.get("fullName") or creator.get("username"),
    }

    if action_type in ("addLabelToCard", "removeLabelFromCard"):
        label: dict[str, Any] = payload.get("label") or {}
        return LabelAction(
            **common,
            label_name=label.get("name") or label.get("color") or "Unknown Label",
            added=action_type == "addLabelToCard",
        )

    if action_type == "addChecklistToCard":
        checklist: dict[str, Any] = payload.get("checklist") or {}
        return ChecklistAdded(**common, checklist_name=checklist.get("name") or "Unknown Checklist")

    if action_type == "updateCheckItemStateOnCard":
        item: dict[str, Any] = payload.get("checkItem") or {}
        return CheckItemStateChanged(
            **common,
            item_name=item.get("name") or "Unknown Item",
            complete=item.get("state") == "complete",
        )

    if action_type in ("addMemberToCard", "removeMemberFromCard"):
        member: dict[str, Any] = payload.get("member") or data.get("member") or {}
        return MemberAction(
            **common,
            member_name=member.get("name") or member.get("fullName") or member.get("username"),
            added=action_type == "addMemberToCard",
        )

    if action_type == "commentCard":
        return CommentAdded(**common, text=payload.get("text") or "")

    if action_type in ("moveCardToBoard", "moveCardFromBoard"):
        target: dict[str, Any] = payload.get("list") or payload.get("listAfter") or {}
        return CardMoved(**common, list_name=target.get("name") or "Unknown List")

    if action_type == "updateCard":
        if "name" in old:
            return CardRenamed(**common, old_name=old.get("name") or "")
        if "due" in old:
            return DueDateChanged(
                **common,
                old_due=parse_timestamp(old.get("due")),
                new_due=parse_timestamp(card.get("due")),
            )
        if "idList" in old and payload.get("listAfter"):
            return CardMoved(**common, list_name=payload["listAfter"].get("name") or "Unknown List")

    return UnrecognizedAction(**common)


def _parse_card(data: dict[str, Any]) -> Card:
    return Card(
        card_id=str(data.get("id", "")),
        name=data.get("name", ""),
        description=data.get("desc", ""),
        list_id=data.get("idList"),
        url=data.get("shortUrl") or data.get("url"),
    )


def _parse_attachment(data: dict[str, Any]) -> CardAttachment:
    return CardAttachment(url=data.get("url") or "", name=data.get("name") or "")


class TrelloAdapter:
    """Trello board adapter implementing the BoardProvider protocol.

    Example:
        adapter = TrelloAdapter(config.trello, config.retry)
        card = await adapter.create_card(CardCreate(
            list_id=config.trello.list_id,
            name="[Discord] Bug 42 - by ana",
            description="Loading thread content...",
        ))
        await adapter.close()
    """

    def __init__(
        self,
        config: TrelloConfig,
        retry_config: RetryConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Trello adapter.

        Args:
            config: Trello-specific configuration.
            retry_config: Retry policy for transient failures.
            client: Preconfigured HTTP client (tests inject a mock transport).
        """
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout,
        )

        retry_config = retry_config or RetryConfig()
        self._retry = create_retry(
            max_attempts=retry_config.max_attempts,
            min_wait=retry_config.initial_delay,
            max_wait=retry_config.max_delay,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Send one authenticated request, retrying transient failures.

        Raises:
            BoardAPIError: If Trello rejects the request or the body is not JSON.
            TransientBoardError: If Trello keeps failing with 429/5xx.
            httpx.TimeoutException: If every attempt timed out.
            httpx.NetworkError: If every attempt failed to connect.
        """
        query = {"key": self._config.api_key, "token": self._config.api_token}
        if params:
            query.update(params)

        async def send() -> Any:
            response = await self._client.request(method, path, params=query, data=data)

            if response.status_code == 429 or response.status_code >= 500:
                raise TransientBoardError(
                    f"Trello {method} {path} failed with {response.status_code}",
                    status_code=response.status_code,
                )
            if response.status_code >= 400:
                raise BoardAPIError(
                    f"Trello {method} {path} rejected with {response.status_code}: "
                    f"{response.text[:200]}",
                    status_code=response.status_code,
                )
            try:
                return response.json()
            except ValueError as e:
                raise BoardAPIError(
                    f"Trello {method} {path} returned a non-JSON body: {response.text[:200]}",
                    status_code=response.status_code,
                ) from e

        return await self._retry(send)()

    async def create_card(self, card: CardCreate) -> Card:
        """Create a new card on a list."""
        data = await self._request(
            "POST",
            "/cards",
            data={
                "idList": card.list_id,
                "name": card.name,
                "desc": card.description,
                "pos": card.position,
            },
        )
        created = _parse_card(data)
        if not created.card_id:
            raise BoardAPIError("Card creation returned no card id")

        log.info("trello_card_created", card_id=created.card_id, name=created.name)
        return created

    async def update_card(self, card_id: str, fields: dict[str, Any]) -> Card:
        """Update fields on a card."""
        data = await self._request("PUT", f"/cards/{card_id}", data=fields)
        log.debug("trello_card_updated", card_id=card_id, fields=sorted(fields))
        return _parse_card(data)

    async def search_cards(self, board_id: str) -> list[Card]:
        """List the open cards on a board."""
        data = await self._request(
            "GET",
            f"/boards/{board_id}/cards",
            params={"fields": "id,name,idList,shortUrl"},
        )
        if not isinstance(data, list):
            return []
        return [_parse_card(item) for item in data]

    async def add_attachment(self, card_id: str, url: str, name: str) -> CardAttachment:
        """Attach a URL to a card."""
        data = await self._request(
            "POST",
            f"/cards/{card_id}/attachments",
            data={"url": url, "name": name},
        )
        return _parse_attachment(data)

    async def list_attachments(self, card_id: str) -> list[CardAttachment]:
        """List the attachments currently on a card."""
        data = await self._request(
            "GET",
            f"/cards/{card_id}/attachments",
            params={"fields": "url,name"},
        )
        if not isinstance(data, list):
            return []
        return [_parse_attachment(item) for item in data]

    async def list_board_actions(
        self,
        board_id: str,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[BoardAction]:
        """List every action on a board since a checkpoint.

        Trello returns actions newest first, at most ``limit`` per request.
        A full page means older actions may remain, so the next request
        asks for actions before the oldest one seen until a short page
        comes back.

        Args:
            board_id: Board to read.
            since: Only actions after this time (all retained actions if None).
            limit: Page size for each request.
        """
        params: dict[str, Any] = {
            "filter": ",".join(RELAYED_ACTION_TYPES),
            "limit": limit,
        }
        if since is not None:
            params["since"] = since.astimezone(UTC).isoformat().replace("+00:00", "Z")

        raw: list[dict[str, Any]] = []
        pages = 0
        while True:
            data = await self._request("GET", f"/boards/{board_id}/actions", params=params)
            pages += 1
            if not isinstance(data, list):
                break

            page = [item for item in data if isinstance(item, dict)]
            raw.extend(page)

            oldest_id = page[-1].get("id") if page else None
            if len(data) < limit or not oldest_id or oldest_id == params.get("before"):
                break
            params["before"] = oldest_id

        actions = [parse_action(item) for item in raw]
        log.debug("trello_actions_fetched", board_id=board_id, count=len(actions), pages=pages)
        return actions

    async def get_board(self, board_id: str) -> dict[str, Any]:
        """Fetch board metadata (used by health checks)."""
        data = await self._request("GET", f"/boards/{board_id}", params={"fields": "id,name"})
        return data if isinstance(data, dict) else {}
