"""
SolarSynk bridge package: Sunsynk cloud telemetry to Home Assistant.

Authenticates against the Sunsynk cloud API, pulls the inverter's realtime
telemetry documents, flattens them into ``sensor.solarsynk_*`` states and
pushes those to the Home Assistant REST API on a fixed refresh interval.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-101)

TODO:
- None
"""
