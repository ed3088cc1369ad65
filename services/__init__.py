"""Application services: sale aggregation, settlement, receipts and summaries."""
