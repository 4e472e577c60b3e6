"""Queue consumer and intake API for the portfolio rebalancer"""

__version__ = "1.0.0"
