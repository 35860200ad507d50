import argparse

from ladetarif.calculator import ChargingCalculator
from ladetarif.catalog_parser import parse_connector_taxonomy, parse_vehicles
from ladetarif.charging_curve import ChargingCurveModel
from ladetarif.constants import DEFAULT_WEBSERVICE_PORT
from ladetarif.data_loader import load_static_data
from ladetarif.logging import log
from ladetarif.tariff_catalog import TariffCatalog
from ladetarif.webservice import LadetarifService


def create_calculator(data_location: str) -> ChargingCalculator:
    """
    Load the static catalogs once and wire them into a calculator

    :param data_location: The directory or base URL holding the catalogs
    :return: The calculator serving all requests for the lifetime of the process
    """
    static_data = load_static_data(data_location)
    vehicles = parse_vehicles(static_data.vehicles)
    log.info(f"Loaded {len(vehicles)} vehicles")

    # The connector taxonomy has to be known before any tariff is parsed
    tariff_catalog = TariffCatalog(parse_connector_taxonomy(static_data.connectors))
    tariff_catalog.load(static_data.providers)
    return ChargingCalculator(ChargingCurveModel(vehicles), tariff_catalog)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--data_location", help="Directory or base URL of the vehicle, provider and connector data",
                        default="data")
    parser.add_argument("--host", help="The address to serve the webservice on", default="0.0.0.0")
    parser.add_argument("--webservice_port", help="The port to use for the webservice", type=int,
                        default=DEFAULT_WEBSERVICE_PORT)
    args = parser.parse_args()

    calculator = create_calculator(args.data_location)
    webservice = LadetarifService(host=args.host, port=args.webservice_port, calculator=calculator)
    webservice.start()
    try:
        webservice.join()
    finally:
        webservice.stop()
        log.info("Web service shut down")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
