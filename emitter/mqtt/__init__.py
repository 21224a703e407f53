"""MQTT packet encoding and decoding."""