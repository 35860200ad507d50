from typing import Any, NamedTuple
import json
import os

import requests

from ladetarif.constants import CONNECTORS_ASSET, PROVIDERS_ASSET, VEHICLES_ASSET
from ladetarif.logging import log

REQUEST_TIMEOUT_SECONDS = 30


class StaticData(NamedTuple):
    vehicles: Any  # Raw vehicle catalog
    providers: Any  # Raw provider records including their tariffs
    connectors: Any  # Raw connector taxonomy


def is_url(location: str) -> bool:
    return location.startswith("http://") or location.startswith("https://")


def load_json_asset(location: str) -> Any:
    """
    Load a JSON document from a local file or from an HTTP(S) URL

    :param location: The path or URL of the document
    :return: The parsed JSON document
    """
    if is_url(location):
        response = requests.get(location, timeout=REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()
    with open(location, encoding="utf-8") as f:
        return json.load(f)


def _join(location: str, asset: str) -> str:
    if is_url(location):
        return f"{location.rstrip('/')}/{asset}"
    return os.path.join(location, asset)


def load_static_data(location: str) -> StaticData:
    """
    Load the vehicle, provider and connector catalogs from a directory or a base URL

    :param location: The directory or base URL holding the catalogs
    :return: The raw catalogs
    """
    log.info(f"Loading static data from '{location}'")
    return StaticData(vehicles=load_json_asset(_join(location, VEHICLES_ASSET)),
                      providers=load_json_asset(_join(location, PROVIDERS_ASSET)),
                      connectors=load_json_asset(_join(location, CONNECTORS_ASSET)))
