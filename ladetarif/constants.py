AC_DEFAULT_MAX_POWER_KW = 22.0  # Typical public AC charging point
DC_DEFAULT_MAX_POWER_KW = 150.0  # Typical DC fast charger
SOC_STEP_PERCENT = 1  # Resolution of the charging simulation

# Generic charging curve used for vehicles without measured curves, as (SoC %, fraction of charger power) breakpoints
GENERIC_CURVE_POINTS = ((0.0, 0.3), (20.0, 0.7), (80.0, 1.0), (100.0, 0.4))

# Connector families used when a tariff declares no explicit connectors
DEFAULT_CHARGING_TYPE_MAPPING = {
    "AC": ("TYPE_1", "TYPE_2", "SCHUKO"),
    "DC": ("CCS_1", "CCS_2", "CHAdeMO", "TESLA"),
}

CURRENCY_SYMBOL = "€"

# Names of the static data assets
VEHICLES_ASSET = "vehicles.json"
PROVIDERS_ASSET = "providers.json"
CONNECTORS_ASSET = "connectors.json"

DEFAULT_WEBSERVICE_PORT = 5042
