"""
vss-daemon: emulate a vehicle speed sensor for an ESP32.

Fuses phone GPS speed with accelerometer integration and streams
SPEED_MPH lines at a steady 10 Hz over Bluetooth RFCOMM or a serial port,
reconnecting with backoff when the link drops.
"""

__version__ = "0.1.0"
