"""
Calendar ingestion pipeline.

Adapters fetch and normalize each upstream calendar, the quality gate
validates and de-duplicates every batch, and the aggregator and delivery
filter select what a subscriber receives.
"""
