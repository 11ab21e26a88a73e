"""Offline recording tools for StarSim."""
