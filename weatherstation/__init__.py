"""
Weather Station - virtual topic engine.

Ingests MQTT readings, keeps a bounded history per topic and republishes
derived topics computed from them.
"""
