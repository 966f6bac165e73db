"""
Import of the browser local-storage export from the first release of the game.

The export is a JSON object::

    {
        "users": {"farmer1": {"username": ..., "email": ..., "password": ..., "farmLevel": 3, ...}},
        "currentUser": {"username": "farmer1", ...},
        "gameSave": {"gameState": {...}, "plots": [...], "camera": {"x": 0, "y": 0}}
    }

Users that already exist are skipped. The save, if any, belongs to ``currentUser``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

from farmledger.auth.service import get_active_user
from farmledger.errors import FarmLedgerError, MalformedPayload
from farmledger.game.progress import ProgressSummary
from farmledger.game.service import apply_progress
from farmledger.leaderboard.categories import normalize_rating

if TYPE_CHECKING:
    from farmledger.service import FarmLedger

logger = structlog.get_logger()

LEGACY_DEFAULT_PASSWORD = "defaultpassword"


@dataclass
class ImportReport:
    users_imported: int = 0
    users_skipped: list[str] = field(default_factory=list)
    users_failed: dict[str, str] = field(default_factory=dict)
    saves_imported: int = 0
    save_error: str | None = None


def _legacy_progress(record: dict[str, Any]) -> ProgressSummary | None:
    if not record.get("farmLevel") and not record.get("totalCoins"):
        return None
    try:
        progress = ProgressSummary(
            level=int(record.get("farmLevel") or 1),
            coins=int(record.get("totalCoins") or 100),
            xp=int(record.get("totalXp") or 0),
            sustainability_rating=normalize_rating(record.get("sustainabilityRating")),
            organic_certified=bool(record.get("organicCertified", False)),
        )
    except (TypeError, ValueError, OverflowError) as e:
        msg = "Legacy progress fields must be numbers"
        raise MalformedPayload(msg) from e
    if min(progress.level, progress.coins, progress.xp) < 0:
        msg = "Legacy progress fields must be non-negative"
        raise MalformedPayload(msg)
    return progress


async def _import_user(ledger: FarmLedger, key: str, record: dict[str, Any], report: ImportReport) -> None:
    username = record.get("username") or key
    if await ledger.credentials.get_by_username(username) is not None:
        logger.info("legacy_user_skipped", username=username)
        report.users_skipped.append(username)
        return

    progress = _legacy_progress(record)
    user = await ledger.credentials.register(
        username,
        record.get("email") or "",
        record.get("password") or LEGACY_DEFAULT_PASSWORD,
    )

    if progress is not None:
        async with ledger.database.transaction() as db:
            db_user = await get_active_user(db, user.id)
            await apply_progress(db, db_user, progress, datetime.now(timezone.utc))

    report.users_imported += 1
    logger.info("legacy_user_imported", user_id=user.id, username=username)


async def import_legacy_export(ledger: FarmLedger, data: dict[str, Any]) -> ImportReport:
    """
    Ingest a local-storage export into an open ledger.

    A user that fails validation is recorded in ``users_failed`` and a
    rejected save in ``save_error``; neither stops the import.

    Raises:
        MalformedPayload: If the export is not a JSON object.
    """
    if not isinstance(data, dict):
        msg = "Legacy export must be a JSON object"
        raise MalformedPayload(msg)

    report = ImportReport()

    for key, record in (data.get("users") or {}).items():
        if not isinstance(record, dict):
            report.users_failed[key] = "User record must be an object"
            continue
        try:
            await _import_user(ledger, key, record, report)
        except FarmLedgerError as e:
            logger.warning("legacy_user_failed", username=key, error=e.code)
            report.users_failed[key] = e.message

    game_save = data.get("gameSave")
    current_user = data.get("currentUser")
    if isinstance(game_save, dict) and isinstance(current_user, dict):
        owner = await ledger.credentials.get_by_username(current_user.get("username") or "")
        if owner is None:
            logger.warning("legacy_save_owner_missing", username=current_user.get("username"))
        else:
            try:
                await ledger.snapshots.save(
                    owner.id,
                    {
                        "state": game_save.get("gameState") or {},
                        "plots": game_save.get("plots") or [],
                        "camera": game_save.get("camera") or {"x": 0, "y": 0},
                    },
                )
            except FarmLedgerError as e:
                logger.warning("legacy_save_failed", user_id=owner.id, error=e.code)
                report.save_error = e.message
            else:
                report.saves_imported += 1

    logger.info(
        "legacy_import_finished",
        users_imported=report.users_imported,
        users_skipped=len(report.users_skipped),
        users_failed=len(report.users_failed),
        saves_imported=report.saves_imported,
    )
    return report
