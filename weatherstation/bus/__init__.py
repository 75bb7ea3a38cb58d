"""
Message bus adapters:
- MqttBus: paho-mqtt broker connection
- LocalBus: in-process loopback with explicit delivery
"""
