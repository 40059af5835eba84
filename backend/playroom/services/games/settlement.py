"""Outcome settlement: fold a finished match into each account's record.

Runs once per session on the in-progress -> completed edge, after the
session guard has been released. Each account is updated independently so
one failing write never blocks the others, and the stats store ignores a
(session, account) pair it has already counted, which makes a retry safe.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List
import logging

from .errors import PersistenceFailure
from .session import COMPLETED, Session, outcomes

logger = logging.getLogger(__name__)


@dataclass
class SettlementReport:
    session_id: str
    win_rates: Dict[Any, float] = field(default_factory=dict)
    already_settled: List[Any] = field(default_factory=list)
    failed: Dict[Any, str] = field(default_factory=dict)

    @property
    def ok(self):
        return not self.failed


def settle(session: Session, stats_store) -> SettlementReport:
    report = SettlementReport(session.id)
    if session.status != COMPLETED:
        return report
    for account, outcome in outcomes(session).items():
        try:
            update = stats_store.increment_stats(session.id, account, outcome)
        except PersistenceFailure as exc:
            logger.exception(f"[settle] game={session.id} account={account} outcome={outcome} failed")
            report.failed[account] = str(exc)
            continue
        if update.applied:
            report.win_rates[account] = update.win_rate
        else:
            report.already_settled.append(account)
    logger.info(
        f"[settle] game={session.id} result={session.result} winner={session.winner} "
        f"updated={sorted(report.win_rates, key=str)} failed={sorted(report.failed, key=str)}"
    )
    return report
