"""
StockLedger 库存台账核心
"""
__version__ = "1.0.0"
