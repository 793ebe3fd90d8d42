"""Transports used to reach name servers."""
