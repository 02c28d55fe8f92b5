import ipaddress


def normalize_mac(mac: str) -> str:
    """Upper-case a MAC address and use ':' as separator"""
    return mac.strip().upper().replace("-", ":")


def split_host_port(address: str) -> tuple[str, str]:
    """
    Split an "ip:port" string into (host, port)

    IPv6 hosts may come bracketed ("[::1]:443") or bare; a bare IPv6
    address only loses its last group as a port when what remains is
    still a valid address. Missing ports yield "".
    """
    address = address.strip()
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        return host, rest.lstrip(":")

    if address.count(":") == 1:
        host, _, port = address.partition(":")
        return host, port

    if address.count(":") > 1:
        host, _, port = address.rpartition(":")
        if port.isdigit():
            try:
                ipaddress.ip_address(host)
                return host, port
            except ValueError:
                pass

    return address, ""
