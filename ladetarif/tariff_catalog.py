from typing import Any, List, Mapping, Optional, Sequence
import datetime as dt

from ladetarif.catalog_parser import parse_provider
from ladetarif.logging import log
from ladetarif.tariffs import Provider, Tariff, TariffQuote
from ladetarif.types import ChargingType, ConnectorTaxonomy, FilterCriteria


def rank_quotes(quotes: Sequence[TariffQuote]) -> List[TariffQuote]:
    """
    Order quotes by total cost, cheapest first. Quotes with equal total cost keep their relative order.

    :param quotes: The quotes to order
    :return: The ordered quotes
    """
    return sorted(quotes, key=lambda q: q.total_cost)


class TariffCatalog:
    def __init__(self, connector_taxonomy: ConnectorTaxonomy) -> None:
        self._taxonomy = connector_taxonomy
        self._providers: List[Provider] = []
        self._tariffs: List[Tariff] = []

    @property
    def connector_taxonomy(self) -> ConnectorTaxonomy:
        return self._taxonomy

    @property
    def providers(self) -> List[Provider]:
        return list(self._providers)

    @property
    def tariffs(self) -> List[Tariff]:
        return list(self._tariffs)

    def load(self, provider_records: Sequence[Mapping[str, Any]]) -> None:
        """
        Load providers and their tariffs from raw configuration, replacing anything loaded before

        :param provider_records: The raw provider records
        """
        self._providers = [parse_provider(record, self._taxonomy) for record in provider_records]
        self._tariffs = [tariff for provider in self._providers for tariff in provider.tariffs]
        log.info(f"Loaded {len(self._tariffs)} tariffs from {len(self._providers)} providers")

    def filter(self, criteria: Optional[FilterCriteria] = None) -> List[Tariff]:
        """
        Select the tariffs matching all given criteria. An empty criterion matches every tariff.

        :param criteria: Provider ids or names, connectors and charging types to select
        :return: The matching tariffs in catalog order
        """
        criteria = criteria or FilterCriteria()
        filtered = self.tariffs

        if len(criteria.providers) > 0:
            filtered = [t for t in filtered if t.provider_id in criteria.providers or
                        t.provider_name in criteria.providers]

        if len(criteria.connectors) > 0:
            connectors = [self._taxonomy.canonical(c) for c in criteria.connectors]
            filtered = [t for t in filtered if t.is_compatible(connectors, self._taxonomy.charging_type_mapping)]

        if len(criteria.charging_types) > 0:
            filtered = [t for t in filtered if t.charging_type in criteria.charging_types]

        return filtered

    def rank(self, tariffs: Sequence[Tariff], energy_kwh: float, charging_minutes: float,
             blocking_minutes: float = 0.0, start: Optional[dt.datetime] = None, end: Optional[dt.datetime] = None,
             provider_id: Optional[str] = None) -> List[TariffQuote]:
        """
        Price a session with every tariff and order the results by total cost, cheapest first

        :param tariffs: The tariffs to compare
        :param energy_kwh: The energy charged
        :param charging_minutes: The time spent charging
        :param blocking_minutes: The time the charging point was occupied
        :param start: The start of the session
        :param end: The end of the session
        :param provider_id: The operator of the charging station
        :return: One quote per tariff, cheapest first
        """
        quotes = [t.quote(energy_kwh, charging_minutes, blocking_minutes, start, end, provider_id) for t in tariffs]
        return rank_quotes(quotes)

    def unique_provider_names(self) -> List[str]:
        return list(dict.fromkeys(p.name for p in self._providers))

    def unique_connectors(self) -> List[str]:
        return list(dict.fromkeys(c for t in self._tariffs for c in t.connectors))

    def tariffs_by_type(self, charging_type: ChargingType) -> List[Tariff]:
        return [t for t in self._tariffs if t.charging_type == charging_type]

    def compatible_tariffs(self, connectors: Sequence[str]) -> List[Tariff]:
        return self.filter(FilterCriteria(connectors=connectors))
