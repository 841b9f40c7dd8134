"""
Optional local overrides.

Do not store real credentials in source control.
Prefer environment variables in deployment.
"""

# Neato cloud account (leave empty by default)
NEATO_EMAIL = ""
NEATO_PASSWORD = ""
# NEATO_POLL_INTERVAL = 60
# NEATO_CACHE_TIMEOUT = 300
# NEATO_DRY_RUN = True

# MQTT broker
MQTT_HOST = "localhost"
MQTT_PORT = 1883
# MQTT_TOPIC = "home/devices/neato/{id}"
