"""Allocation diff: buy/sell transactions that move a portfolio to its target"""

from typing import List, Mapping, Optional
import logging
from .models import RebalanceTransaction, TransactionAction


class RebalanceCalculator:
    """Calculate transactions needed for rebalancing"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def calculate_transactions(self, new_allocation: Mapping[str, float],
                               current_allocation: Mapping[str, float],
                               user_id: str) -> List[RebalanceTransaction]:
        """
        Calculate one transaction per asset whose weight differs.

        An asset missing from either allocation weighs 0 there. BUY means the
        asset has to grow towards its target, SELL that it has to shrink.
        Returns transactions sorted by asset identifier.
        """
        transactions = []
        assets = set(new_allocation) | set(current_allocation)

        for asset in sorted(assets):
            target = new_allocation.get(asset, 0.0)
            current = current_allocation.get(asset, 0.0)
            transaction = self._calculate_asset_transaction(user_id, asset, target, current)
            if transaction is not None:
                transactions.append(transaction)

        self.logger.debug(
            f"Calculated {len(transactions)} transactions for user {user_id} "
            f"across {len(assets)} assets"
        )
        return transactions

    def _calculate_asset_transaction(self, user_id: str, asset: str, target: float,
                                     current: float) -> Optional[RebalanceTransaction]:
        difference = target - current
        if difference == 0:
            return None

        action = TransactionAction.BUY if difference > 0 else TransactionAction.SELL
        self.logger.debug(f"{action.value} {asset}: current={current}%, target={target}%")
        return RebalanceTransaction(
            user_id=user_id,
            asset=asset,
            action=action,
            rebalance_percent=abs(difference)
        )


_default_calculator = RebalanceCalculator()


def diff(new_allocation: Mapping[str, float], current_allocation: Mapping[str, float],
         user_id: str) -> List[RebalanceTransaction]:
    """Transactions moving current_allocation to new_allocation for user_id"""
    return _default_calculator.calculate_transactions(new_allocation, current_allocation, user_id)
