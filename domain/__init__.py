"""Pure domain model for course pricing, payments and entitlements."""
