"""
Data models for raw topics and derived topic declarations.
"""
