from netwatch.capture.handle import ScapyHandle, open_handle
from netwatch.capture.iface import InterfaceInfo, interface_info
from netwatch.capture.pyshark_capture import PysharkCapture
