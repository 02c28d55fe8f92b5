import pytest

from SNITAP.util import normalize_mac, split_host_port


def test_normalize_mac():
    assert normalize_mac(" aa-bb-cc-dd-ee-ff ") == "AA:BB:CC:DD:EE:FF"
    assert normalize_mac("aa:bb:cc:dd:ee:ff") == "AA:BB:CC:DD:EE:FF"


@pytest.mark.parametrize("address, expected", [
    ("192.168.1.100:38894", ("192.168.1.100", "38894")),
    ("[2001:db8::1]:443", ("2001:db8::1", "443")),
    ("2001:db8::1:443", ("2001:db8::1", "443")),
    ("fe80::1", ("fe80::1", "")),
    ("10.0.0.1", ("10.0.0.1", "")),
])
def test_split_host_port(address, expected):
    assert split_host_port(address) == expected
