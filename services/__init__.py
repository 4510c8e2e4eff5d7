"""Pricing, checkout, settlement and entitlement services."""
