"""Combustion predictive thermometer support."""
