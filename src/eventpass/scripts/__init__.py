"""Operational command line tools."""
