"""TrendStream: trend-tracking stream ingestion and message ranking.

Subpackages:
- core: settings, logging, persistence and domain records
- tracker: tokenizer, keyword index, trend catalog and rate monitor
- ingestor: feeds, batching and the ingestion control loop
- ranker: message ranking and trend quality
"""

__version__ = "0.1.0"
