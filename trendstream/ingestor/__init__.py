"""Stream ingestion: feeds, batching and the ingestion control loop."""
