# /liquidator/core/state.py
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from liquidator.core.logger import get_logger
from liquidator.core.models import ExecutionResult

log = get_logger(__name__)


class State(BaseModel):
    """
    Record of one bot session: every attempt and the profit it realized.
    Immutable; each update returns a new State.
    """
    model_config = ConfigDict(frozen=True)

    session_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    profit_by_asset: Dict[str, int] = Field(default_factory=dict)
    history: List[Dict[str, Any]] = Field(default_factory=list)

    def _log_and_record(self, event_type: str, data: Dict[str, Any]) -> 'State':
        timestamp = datetime.now(timezone.utc)
        log.info(event_type, session_id=str(self.session_id), timestamp=timestamp.isoformat(), **data)
        new_history_entry = {"event_type": event_type, "timestamp": timestamp.isoformat(), "data": data}
        return self.model_copy(update={"history": self.history + [new_history_entry]})

    def record_attempt(self, result: ExecutionResult) -> 'State':
        event_type = "LIQUIDATION_EXECUTED" if result.success else "LIQUIDATION_SKIPPED"
        new_state = self._log_and_record(event_type, result.model_dump(mode="json"))
        if result.success and result.profit_asset:
            return new_state.update_profit({result.profit_asset: result.profit})
        return new_state

    def update_profit(self, changes: Dict[str, int]) -> 'State':
        new_profit = self.profit_by_asset.copy()
        for asset, change in changes.items():
            new_profit[asset] = new_profit.get(asset, 0) + change
        log.info("PROFIT_UPDATED", session_id=str(self.session_id), changes=changes, totals=new_profit)
        return self.model_copy(update={"profit_by_asset": new_profit})

    @property
    def successful_attempts(self) -> int:
        return sum(1 for h in self.history if h["event_type"] == "LIQUIDATION_EXECUTED")
