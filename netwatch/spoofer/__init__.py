from netwatch.spoofer.resolver import ArpResolver, get_mac
from netwatch.spoofer.engine import EngineState, MitmEngine, SpoofSession, new_mitm_engine
from netwatch.spoofer.forward import enable_ip_forwarding, disable_ip_forwarding
