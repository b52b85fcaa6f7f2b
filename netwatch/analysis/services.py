"""Well-known port to service name table."""

COMMON_PORTS = {
    20: "FTP-DATA",
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    143: "IMAP",
    443: "HTTPS",
    3306: "MySQL",
    5432: "PostgreSQL",
    6379: "Redis",
    8080: "HTTP-Alt",
}


def service_name(port: int) -> str:
    """Return the common name for a port, or the port number as a string."""
    return COMMON_PORTS.get(port, str(port))
