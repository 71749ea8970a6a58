"""Helpers for testing metrics: comparison, linting, histograms and fake registries."""