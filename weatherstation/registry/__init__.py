"""
Topic Registry Module.

Raw topics seen on the bus, the exclude list, source bindings and the
derived (virtual) topics computed from them.
"""
