import json

import pytest

from resourcewatch.config import TrafficOpsSettings
from resourcewatch.credentials import TrafficOpsCredentials
from resourcewatch.errors import ConfigResolutionError


def test_auth_url_and_payload():
    creds = TrafficOpsCredentials(
        TrafficOpsSettings(host="to.example.net", username="admin", password="secret", login_path="api/4.0/user/login")
    )
    assert creds.get_auth_url() == "https://to.example.net/api/4.0/user/login"
    payload = creds.get_auth_credentials()
    assert json.loads(payload) == {"u": "admin", "p": "secret"}
    assert payload == creds.get_auth_credentials()


def test_missing_values_raise_resolution_error():
    creds = TrafficOpsCredentials(TrafficOpsSettings(username="admin"))
    with pytest.raises(ConfigResolutionError):
        creds.get_auth_url()
    with pytest.raises(ConfigResolutionError):
        creds.get_auth_credentials()


def test_interpolate_replaces_known_tokens_only():
    creds = TrafficOpsCredentials(TrafficOpsSettings(host="to.example.net", tokens={"cdnName": "cdn1"}))
    url = creds.interpolate("https://${toHostname}/api/4.0/cdns/${cdnName}/federations?key=${apiKey}")
    assert url == "https://to.example.net/api/4.0/cdns/cdn1/federations?key=${apiKey}"
