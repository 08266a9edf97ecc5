"""Core services: Tuya client, tariff classifier, aggregation and processing."""
