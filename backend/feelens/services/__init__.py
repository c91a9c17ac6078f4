"""FeeLens - core services"""
