"""Cluster health evaluation, shared health state and alert transitions."""
