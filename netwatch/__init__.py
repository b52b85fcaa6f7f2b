"""
Netwatch Package
================

ARP host discovery, ARP-spoofing MITM and live traffic analytics,
organised in the same layered way as a small IDS: capture, spoofer,
discovery, analysis and api.
"""

from . import capture, spoofer, discovery, analysis, api, utils
