"""Capture source (scapy) and recorded sessions. Import submodules directly."""
