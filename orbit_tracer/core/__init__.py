"""Configuration, sampling, orbit iteration and canvases."""
