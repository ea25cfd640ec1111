import ipaddress


def normalize_ip(value):
    """Canonical text form of an IP address, or None if ``value`` is not one."""
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(str(value).strip()))
    except ValueError:
        return None
