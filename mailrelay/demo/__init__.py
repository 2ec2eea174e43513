"""
Demo application for mailrelay.
"""
