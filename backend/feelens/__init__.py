"""FeeLens - fee transparency core service."""
