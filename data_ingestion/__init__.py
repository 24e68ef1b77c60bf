"""
Data Ingestion Package.

This package turns raw marketplace payloads into normalized
records. No persistence and no HTTP - only data shaping.

Sub-packages:
- normalizers: size and SKU normalization, StockX and Alias
  payload mappers
"""
