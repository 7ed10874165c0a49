"""Push pipeline services: batch processing, push commands, form triggers, summaries."""
