from typing import Optional


def client_ip(headers, peer: Optional[str]) -> str:
    """Best guess at the caller's address: platform header, proxy chain, then socket peer."""
    connecting_ip = headers.get("cf-connecting-ip")
    if connecting_ip:
        return connecting_ip
    forwarded_for = headers.get("x-forwarded-for", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    return peer or "unknown"
