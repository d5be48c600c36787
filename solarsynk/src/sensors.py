"""
Sunsynk telemetry field map and Home Assistant sensor catalogue.

Single source of truth for:

- :data:`FIELDS`: every value the projector extracts, as a document key plus
  a fixed path into that document's JSON tree.
- :data:`SENSORS`: the static Home Assistant metadata (device class, state
  class, unit, friendly name) of every value the dispatcher publishes. Keys
  in :data:`FIELDS` that have no entry here (the inverter info block) are
  projected for the startup banner but never published.

Paths are tuples of dict keys and list indices; negative indices count from
the end, so ``("data", "infos", 0, "records", -1, "value")`` is the most
recent DC temperature sample.

CHANGELOG:
- 2026-10-15: Snake-case the UPS load keys so entity ids are valid
- 2026-10-12: Initial creation (STORY-106)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass

ENTITY_PREFIX = "sensor.solarsynk_"

PathPart = str | int

# ---------------------------------------------------------------------------
# Data definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FieldDef:
    """Where to find one value in the fetched telemetry.

    Attributes:
        key: Unique identifier used as dict key and entity suffix.
        document: Key of the telemetry document (see fetcher ENDPOINTS).
        path: Keys and list indices leading to the value.
    """

    key: str
    document: str
    path: tuple[PathPart, ...]


@dataclass(frozen=True, slots=True)
class SensorSpec:
    """Static Home Assistant metadata for one published sensor.

    Attributes:
        key: Matches a :class:`FieldDef` key.
        friendly_name: Human-readable name shown in Home Assistant.
        device_class: Optional Home Assistant device class.
        state_class: Optional Home Assistant state class.
        unit: Unit of measurement. ``None`` omits the attribute, ``""``
            sends an explicit empty unit.
    """

    key: str
    friendly_name: str
    device_class: str | None = None
    state_class: str | None = None
    unit: str | None = None

    @property
    def entity_id(self) -> str:
        return f"{ENTITY_PREFIX}{self.key}"

    def attributes(self) -> dict[str, str]:
        """State attributes, without ``friendly_name``."""
        attrs: dict[str, str] = {}
        if self.device_class is not None:
            attrs["device_class"] = self.device_class
        if self.state_class is not None:
            attrs["state_class"] = self.state_class
        if self.unit is not None:
            attrs["unit_of_measurement"] = self.unit
        return attrs


# ---------------------------------------------------------------------------
# Metadata shorthands
# ---------------------------------------------------------------------------

_MEASUREMENT = "measurement"
_TOTAL_INCREASING = "total_increasing"


def _voltage(key: str, name: str) -> SensorSpec:
    return SensorSpec(key, name, "voltage", _MEASUREMENT, "V")


def _current(key: str, name: str) -> SensorSpec:
    return SensorSpec(key, name, "current", _MEASUREMENT, "A")


def _power(key: str, name: str) -> SensorSpec:
    return SensorSpec(key, name, "power", _MEASUREMENT, "W")


def _frequency(key: str, name: str) -> SensorSpec:
    return SensorSpec(key, name, "frequency", _MEASUREMENT, "Hz")


def _temperature(key: str, name: str) -> SensorSpec:
    return SensorSpec(key, name, "temperature", _MEASUREMENT, "°C")


def _battery(key: str, name: str) -> SensorSpec:
    return SensorSpec(key, name, "battery", _MEASUREMENT, "%")


def _energy(key: str, name: str) -> SensorSpec:
    return SensorSpec(key, name, "energy", _TOTAL_INCREASING, "kWh")


def _text(key: str, name: str) -> SensorSpec:
    return SensorSpec(key, name, unit="")


def _data(document: str, key: str, *path: PathPart) -> FieldDef:
    return FieldDef(key, document, ("data", *path))


# ---------------------------------------------------------------------------
# Inverter info (inverterinfo document)
# ---------------------------------------------------------------------------

_INFO_FIELDS: list[FieldDef] = [
    _data("inverterinfo", "inverterinfo_brand", "brand"),
    _data("inverterinfo", "inverterinfo_status", "status"),
    _data("inverterinfo", "inverterinfo_runstatus", "runStatus"),
    _data("inverterinfo", "inverterinfo_ratepower", "ratePower"),
    _data("inverterinfo", "inverterinfo_plantid", "plant", "id"),
    _data("inverterinfo", "inverterinfo_plantname", "plant", "name"),
    _data("inverterinfo", "inverterinfo_serial", "sn"),
    _data("inverterinfo", "inverterinfo_updateat", "updateAt"),
]

_INFO_SENSORS: list[SensorSpec] = [
    SensorSpec("inverterinfo_updateat", "Updated At", device_class="timestamp"),
]

# ---------------------------------------------------------------------------
# Battery, per-pack battery and BMS (batterydata document)
# ---------------------------------------------------------------------------

_BATTERY_FIELDS: list[FieldDef] = [
    _data("batterydata", "battery_capacity", "capacity"),
    _data("batterydata", "battery_chargevolt", "chargeVolt"),
    _data("batterydata", "battery_current", "current"),
    _data("batterydata", "battery_dischargevolt", "dischargeVolt"),
    _data("batterydata", "battery_power", "power"),
    _data("batterydata", "battery_soc", "soc"),
    _data("batterydata", "battery_temperature", "temp"),
    _data("batterydata", "battery_type", "type"),
    _data("batterydata", "battery_voltage", "voltage"),
    _data("batterydata", "battery1_voltage", "batteryVolt1"),
    _data("batterydata", "battery1_current", "batteryCurrent1"),
    _data("batterydata", "battery1_power", "batteryPower1"),
    _data("batterydata", "battery1_soc", "batterySoc1"),
    _data("batterydata", "battery1_temperature", "batteryTemp1"),
    _data("batterydata", "battery1_status", "status"),
    _data("batterydata", "battery2_voltage", "batteryVolt2"),
    _data("batterydata", "battery2_current", "batteryCurrent2"),
    _data("batterydata", "battery2_chargevolt", "chargeVolt2"),
    _data("batterydata", "battery2_dischargevolt", "dischargeVolt2"),
    _data("batterydata", "battery2_power", "batteryPower2"),
    _data("batterydata", "battery2_soc", "batterySoc2"),
    _data("batterydata", "battery2_temperature", "batteryTemp2"),
    _data("batterydata", "battery2_status", "batteryStatus2"),
    _data("batterydata", "bms_soc", "bmsSoc"),
    _data("batterydata", "bms_voltage", "bmsVolt"),
    _data("batterydata", "bms_current", "bmsCurrent"),
    _data("batterydata", "bms_temperature", "bmsTemp"),
]

_BATTERY_SENSORS: list[SensorSpec] = [
    SensorSpec("battery_capacity", "Battery Capacity", unit="Ah"),
    _voltage("battery_chargevolt", "Battery Charge Voltage"),
    _current("battery_current", "Battery Current"),
    _voltage("battery_dischargevolt", "Battery Discharge Voltage"),
    _power("battery_power", "Battery Power"),
    _battery("battery_soc", "Battery SOC"),
    _temperature("battery_temperature", "Battery Temp"),
    _text("battery_type", "Battery Type"),
    _voltage("battery_voltage", "Battery Voltage"),
    _voltage("battery1_voltage", "Battery 1 Voltage"),
    _current("battery1_current", "Battery 1 Current"),
    _power("battery1_power", "Battery 1 Power"),
    _battery("battery1_soc", "Battery 1 SOC"),
    _temperature("battery1_temperature", "Battery 1 Temp"),
    _text("battery1_status", "Battery 1 Status"),
    _voltage("battery2_voltage", "Battery 2 Voltage"),
    _current("battery2_current", "Battery 2 Current"),
    _voltage("battery2_chargevolt", "Battery 2 Charge Voltage"),
    _voltage("battery2_dischargevolt", "Battery 2 Discharge Voltage"),
    _power("battery2_power", "Battery 2 Power"),
    _battery("battery2_soc", "Battery 2 SOC"),
    _temperature("battery2_temperature", "Battery 2 Temp"),
    _text("battery2_status", "Battery 2 Status"),
    _battery("bms_soc", "BMS State of Charge"),
    _voltage("bms_voltage", "BMS Voltage"),
    _current("bms_current", "BMS Current"),
    _temperature("bms_temperature", "BMS Temperature"),
]

# ---------------------------------------------------------------------------
# Daily energy counters (spread over four documents)
# ---------------------------------------------------------------------------

_DAILY_FIELDS: list[FieldDef] = [
    _data("batterydata", "day_battery_charge", "etodayChg"),
    _data("batterydata", "day_battery_discharge", "etodayDischg"),
    _data("griddata", "day_grid_export", "etodayTo"),
    _data("griddata", "day_grid_import", "etodayFrom"),
    _data("loaddata", "day_load_energy", "dailyUsed"),
    _data("pvindata", "day_pv_energy", "etoday"),
]

_DAILY_SENSORS: list[SensorSpec] = [
    _energy("day_battery_charge", "Daily Battery Charge"),
    _energy("day_battery_discharge", "Daily Battery Discharge"),
    _energy("day_grid_export", "Daily Grid Export"),
    _energy("day_grid_import", "Daily Grid Import"),
    _energy("day_load_energy", "Daily Load Energy"),
    _energy("day_pv_energy", "Daily PV Energy"),
]

# ---------------------------------------------------------------------------
# Three-phase line entries: data.vip[0..2] in grid, output and load documents.
# Index 0 carries no suffix, indices 1 and 2 are suffixed "1"/"2" (L1/L2).
# ---------------------------------------------------------------------------

_PHASES: tuple[tuple[int, str, str], ...] = ((0, "", ""), (1, "1", " L1"), (2, "2", " L2"))


def _phase_fields(document: str, prefix: str) -> list[FieldDef]:
    fields: list[FieldDef] = []
    for index, suffix, _ in _PHASES:
        fields.extend(
            [
                _data(document, f"{prefix}_power{suffix}", "vip", index, "power"),
                _data(document, f"{prefix}_voltage{suffix}", "vip", index, "volt"),
                _data(document, f"{prefix}_current{suffix}", "vip", index, "current"),
            ]
        )
    return fields


def _phase_sensors(prefix: str, label: str) -> list[SensorSpec]:
    sensors: list[SensorSpec] = []
    for _, suffix, name_suffix in _PHASES:
        sensors.extend(
            [
                _power(f"{prefix}_power{suffix}", f"{label} Power{name_suffix}"),
                _voltage(f"{prefix}_voltage{suffix}", f"{label} Voltage{name_suffix}"),
                _current(f"{prefix}_current{suffix}", f"{label} Current{name_suffix}"),
            ]
        )
    return sensors


# ---------------------------------------------------------------------------
# Grid (griddata document)
# ---------------------------------------------------------------------------

_GRID_FIELDS: list[FieldDef] = [
    _data("griddata", "grid_connected_status", "status"),
    _data("griddata", "grid_frequency", "fac"),
    _data("griddata", "grid_power_ac", "pac"),
    _data("griddata", "grid_power_reactive", "qac"),
    _data("griddata", "grid_power_factor", "pf"),
    *_phase_fields("griddata", "grid"),
]

_GRID_SENSORS: list[SensorSpec] = [
    _text("grid_connected_status", "Grid Connection Status"),
    _frequency("grid_frequency", "Grid Freq"),
    _power("grid_power_ac", "Grid Power AC"),
    SensorSpec("grid_power_reactive", "Grid Reactive Power", "reactive_power", _MEASUREMENT, "var"),
    SensorSpec("grid_power_factor", "Grid Power Factor", "power_factor", _MEASUREMENT),
    *_phase_sensors("grid", "Grid"),
]

# ---------------------------------------------------------------------------
# Inverter output (outputdata document)
# ---------------------------------------------------------------------------

_OUTPUT_FIELDS: list[FieldDef] = [
    _data("outputdata", "inverter_frequency", "fac"),
    *_phase_fields("outputdata", "inverter"),
    _data("outputdata", "output_pac", "pac"),
    _data("outputdata", "output_pinv", "pInv"),
]

_OUTPUT_SENSORS: list[SensorSpec] = [
    _frequency("inverter_frequency", "Inverter Freq"),
    *_phase_sensors("inverter", "Inverter"),
    _power("output_pac", "Output AC Power"),
    _power("output_pinv", "Inverter Input Power"),
]

# ---------------------------------------------------------------------------
# Load (loaddata document)
# ---------------------------------------------------------------------------

_LOAD_FIELDS: list[FieldDef] = [
    _data("loaddata", "load_frequency", "loadFac"),
    *_phase_fields("loaddata", "load"),
    _data("loaddata", "load_ups_power_l1", "upsPowerL1"),
    _data("loaddata", "load_ups_power_l2", "upsPowerL2"),
    _data("loaddata", "load_ups_power_l3", "upsPowerL3"),
    _data("loaddata", "load_ups_power_total", "upsPowerTotal"),
    _data("loaddata", "load_totalpower", "totalPower"),
]

_LOAD_SENSORS: list[SensorSpec] = [
    _frequency("load_frequency", "Load Freq"),
    *_phase_sensors("load", "Load"),
    _power("load_ups_power_l1", "Load UPS Power L1"),
    _power("load_ups_power_l2", "Load UPS Power L2"),
    _power("load_ups_power_l3", "Load UPS Power L3"),
    _power("load_ups_power_total", "Load UPS Power Total"),
    _power("load_totalpower", "Load Total Power"),
]

# ---------------------------------------------------------------------------
# PV strings 1-4 (pvindata document, data.pvIV[0..3])
# ---------------------------------------------------------------------------

PV_STRING_COUNT = 4

_PV_FIELDS: list[FieldDef] = [
    field
    for n in range(1, PV_STRING_COUNT + 1)
    for field in (
        _data("pvindata", f"pv{n}_current", "pvIV", n - 1, "ipv"),
        _data("pvindata", f"pv{n}_power", "pvIV", n - 1, "ppv"),
        _data("pvindata", f"pv{n}_voltage", "pvIV", n - 1, "vpv"),
    )
]

_PV_SENSORS: list[SensorSpec] = [
    sensor
    for n in range(1, PV_STRING_COUNT + 1)
    for sensor in (
        _current(f"pv{n}_current", f"PV{n} Current"),
        _power(f"pv{n}_power", f"PV{n} Power"),
        _voltage(f"pv{n}_voltage", f"PV{n} Voltage"),
    )
]

# ---------------------------------------------------------------------------
# Time-of-use programs 1-6 and system settings (settings document)
# ---------------------------------------------------------------------------

PROGRAM_SLOT_COUNT = 6

_SETTINGS_FIELDS: list[FieldDef] = [
    *(
        field
        for n in range(1, PROGRAM_SLOT_COUNT + 1)
        for field in (
            _data("settings", f"prog{n}_time", f"sellTime{n}"),
            _data("settings", f"prog{n}_charge", f"time{n}on"),
            _data("settings", f"prog{n}_capacity", f"cap{n}"),
        )
    ),
    _data("settings", "battery_shutdown_cap", "batteryShutdownCap"),
    _data("settings", "use_timer", "peakAndVallery"),
    _data("settings", "priority_load", "energyMode"),
]

_SETTINGS_SENSORS: list[SensorSpec] = [
    *(
        sensor
        for n in range(1, PROGRAM_SLOT_COUNT + 1)
        for sensor in (
            _text(f"prog{n}_time", f"Prog{n} Time"),
            _text(f"prog{n}_charge", f"Prog{n} Charge"),
            SensorSpec(f"prog{n}_capacity", f"Prog{n} Capacity", unit="%"),
        )
    ),
    _battery("battery_shutdown_cap", "Battery Shutdown Cap"),
    _text("use_timer", "Use Timer"),
    _text("priority_load", "Priority Load"),
]

# ---------------------------------------------------------------------------
# Temperatures (dcactemp document: infos[0] = dc_temp, infos[1] = igbt_temp)
# ---------------------------------------------------------------------------

_TEMP_FIELDS: list[FieldDef] = [
    _data("dcactemp", "dc_temp", "infos", 0, "records", -1, "value"),
    _data("dcactemp", "ac_temp", "infos", 1, "records", -1, "value"),
]

_TEMP_SENSORS: list[SensorSpec] = [
    _temperature("dc_temp", "Inverter DC Temp"),
    _temperature("ac_temp", "Inverter AC Temp"),
]

# ---------------------------------------------------------------------------
# Derived
# ---------------------------------------------------------------------------

OVERALL_STATE_KEY = "overall_state"
OVERALL_STATE_SOURCE = "inverterinfo_runstatus"
"""``overall_state`` is a pure alias of the inverter run status."""

_DERIVED_SENSORS: list[SensorSpec] = [
    _text(OVERALL_STATE_KEY, "Inverter Overall State"),
]

# ---------------------------------------------------------------------------
# Aggregate lookups
# ---------------------------------------------------------------------------

FIELDS: tuple[FieldDef, ...] = (
    *_INFO_FIELDS,
    *_BATTERY_FIELDS,
    *_DAILY_FIELDS,
    *_GRID_FIELDS,
    *_OUTPUT_FIELDS,
    *_LOAD_FIELDS,
    *_PV_FIELDS,
    *_SETTINGS_FIELDS,
    *_TEMP_FIELDS,
)
"""Every extracted field, in a stable order."""

SENSORS: dict[str, SensorSpec] = {
    spec.key: spec
    for spec in (
        *_INFO_SENSORS,
        *_BATTERY_SENSORS,
        *_DAILY_SENSORS,
        *_GRID_SENSORS,
        *_OUTPUT_SENSORS,
        *_LOAD_SENSORS,
        *_PV_SENSORS,
        *_SETTINGS_SENSORS,
        *_TEMP_SENSORS,
        *_DERIVED_SENSORS,
    )
}
"""Published sensors, keyed by :attr:`SensorSpec.key`."""

PROJECTED_KEYS: tuple[str, ...] = (*(f.key for f in FIELDS), OVERALL_STATE_KEY)
"""Every key the projector emits, derived keys included."""
