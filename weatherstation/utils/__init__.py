"""
Utility modules for the weather station.

Cross-cutting concerns:
- Storage: JSON documents for declarations and the exclude list
"""
