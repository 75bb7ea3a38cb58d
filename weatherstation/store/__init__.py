"""
Time-series store:
- MemoryStore: pandas-backed store with CSV persistence
- StoreRecorder: writes inbound messages as points
"""
