"""
Cross-Exchange Arbitrage Trading Simulator.

An asynchronous simulator that scans venue price spreads, gates candidate
trades through risk checks or a multi-category rule battery, and simulates
execution with latency, slippage, partial fills and stop-loss outcomes.
"""

__version__ = "1.0.0"
__author__ = "Tim"
